import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger

from recipe_vault_chat.app_config import load_json_config, parse_app_config, resolve_runtime_env
from recipe_vault_chat.bootstrap import bootstrap_runtime
from recipe_vault_chat.errors import ChatError

_LINE_PREFIX = "assistant> "
_USER_PROMPT = "you> "


async def main() -> None:
    load_dotenv()

    app = parse_app_config(load_json_config())
    env = resolve_runtime_env(app.provider_name)
    try:
        runtime = bootstrap_runtime(app, env)
    except ValueError as ex:
        logger.error(str(ex))
        sys.exit(1)

    chat = runtime.chat_service
    print("recipe-vault-chat (type 'exit' to quit, '/reset' to start a new conversation)")
    print(f"Provider: {runtime.provider_name} ({app.model})")
    print("MCP servers:")
    for name, server in runtime.mcp_server_configs.items():
        print(f"  - {name}: {server['command']} {' '.join(server.get('args', []))}".rstrip())
    if runtime.log_descriptions:
        print(f"Logging: {', '.join(runtime.log_descriptions)}")
    print()

    conversation_id: str | None = None
    try:
        while True:
            try:
                user_input = await asyncio.to_thread(input, _USER_PROMPT)
            except (EOFError, KeyboardInterrupt):
                break

            trimmed = user_input.strip()
            if trimmed in ("exit", "quit"):
                break
            if not trimmed:
                continue
            if trimmed == "/reset":
                if conversation_id is not None:
                    await chat.reset(conversation_id)
                conversation_id = None
                print(f"{_LINE_PREFIX}Started a new conversation.\n")
                continue

            try:
                reply = await chat.send_message(conversation_id, trimmed)
            except ChatError as ex:
                logger.error(f"Chat turn failed: {ex}")
                print(f"{_LINE_PREFIX}Sorry, something went wrong: {ex}\n")
                continue

            conversation_id = reply.conversation_id
            print(f"{_LINE_PREFIX}{reply.text}")
            if reply.tools_used:
                print(f"  [tools: {', '.join(reply.tools_used)}]")
            for recipe_id in reply.recipe_ids:
                print(f"  [display recipe: {recipe_id}]")
            for minutes, label in reply.timers:
                print(f"  [timer: {label}, {minutes:g} min]")
            print()
    finally:
        await chat.shutdown()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
