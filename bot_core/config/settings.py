"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置。
应用启动时只读取一次，之后通过 AppContext 显式传递。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("BOT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class BotSettings(BaseSettings):
    """机器人运行时配置。"""

    # ---- 存储 ----
    storage_root: str = Field(default=".storage", description="JSON 文档存储目录")
    users_table: str = Field(default="UsersData", description="用户会话表名（JSON 文件名）")
    is_local_storage: bool = Field(
        default=False,
        description="平台支持时，会话状态随 webhook 请求/响应往返，不落盘",
    )

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否截断日志中的用户原话")

    # ---- 意图匹配 ----
    intent_threshold: float = Field(default=75.0, description="意图槽位模糊匹配阈值（0-100）")
    high_confidence_threshold: float = Field(
        default=90.0,
        description="超过该分值立即停止扫描其余意图",
    )
    max_command_length: int = Field(
        default=1024,
        ge=1,
        description="正则匹配前用户文本的最大长度",
    )
    max_pattern_length: int = Field(default=256, ge=1, description="单条正则命令的最大长度")

    # ---- 默认回复 ----
    welcome_text: str = Field(default="Текст приветствия")
    help_text: str = Field(default="Текст помощи")
    empty_text: str = Field(default="Извините, я вас не понял")
    fallback_text: str = Field(
        default="Произошла ошибка, попробуйте повторить запрос позже",
        description="控制器抛出异常时返回给用户的文本",
    )
    malformed_text: str = Field(
        default="Не удалось разобрать запрос",
        description="请求无法解析时返回给用户的文本",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("intent_threshold", "high_confidence_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0 <= v <= 100:
            raise ValueError("threshold must be within [0, 100]")
        return v

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "BotSettings":
        if self.high_confidence_threshold < self.intent_threshold:
            raise ValueError("high_confidence_threshold must not be lower than intent_threshold")
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = BotSettings()
