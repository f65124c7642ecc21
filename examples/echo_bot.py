"""Minimal demonstration of the dispatcher with a counting controller."""

import asyncio

from bot_core import AppContext, Dispatcher, IncomingRequest, Intent


class CounterController:
    def action(self, context, action_name):
        context.data["counter"] = context.data.get("counter", 0) + 1
        if action_name == "greeting":
            context.text = f"Привет! Это сообщение №{context.data['counter']}"
        elif action_name == "by":
            context.text = "Пока!"
            context.is_end = True
        else:
            context.text = f"Вы сказали: {context.request.original_utterance}"


async def main():
    app = AppContext(intents=[Intent("greeting", ["привет", "здравствуй"])])
    bot = Dispatcher(app, CounterController())
    bot.register_command("by", ["пока", "до свидания"])

    for seq, text in enumerate(["Привет", "Как дела?", "Пока"]):
        request = IncomingRequest(
            platform="user_application",
            user_id="demo-user",
            command=text.lower(),
            original_utterance=text,
            message_seq=seq,
            is_first_message=seq == 0,
        )
        result = await bot.dispatch(request)
        print("User:", text)
        print("Bot:", result.text, "(end)" if result.end_conversation else "")


if __name__ == "__main__":
    asyncio.run(main())
