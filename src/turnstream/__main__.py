"""CLI entry point for turnstream."""

from __future__ import annotations

import argparse
import asyncio
import sys

from turnstream.config import AppConfig, load_config
from turnstream.log import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="turnstream",
        description="Streaming tool-using chat agent server",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", default=None, help="Override server.host")
    serve_parser.add_argument("--port", type=int, default=None, help="Override server.port")

    subparsers.add_parser("config-check", help="Validate configuration")

    ask_parser = subparsers.add_parser("ask", help="Run one turn in the terminal")
    ask_parser.add_argument("question", help="Question for the agent")
    ask_parser.add_argument("--user", default="cli", help="User id to record the chat under")
    ask_parser.add_argument("--chat-id", default=None, help="Continue an existing conversation")

    for sub in (serve_parser, ask_parser, subparsers.choices["config-check"]):
        sub.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
        sub.add_argument("-e", "--env", default=".env", help="Path to .env file")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    config = _load(args.config, args.env)

    if args.command == "config-check":
        _check_config(config, args.config)
    elif args.command == "serve":
        _serve(config, args.host, args.port)
    elif args.command == "ask":
        asyncio.run(_ask(config, args.question, args.user, args.chat_id))


def _load(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Run 'python install.py' first or copy config.example.yaml to config.yaml")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config: AppConfig, config_path: str) -> None:
    """Print a configuration summary."""
    print(f"Configuration valid: {config_path}")
    print(f"  Model   : {config.model.backend}:{config.model.model} (temperature={config.model.temperature})")
    print(f"  Base URL: {config.model.base_url or '(default)'}")
    print(f"  API key : {'set' if config.model.api_key else 'MISSING'}")
    print(f"  Tools   : {', '.join(config.agent.tools) or '(none)'}")
    if "search" in config.agent.tools:
        print(f"  Search  : {'key set' if config.tools.search.api_key else 'key MISSING'}")
    print(f"  Max iterations: {config.agent.max_iterations}")
    print(f"  Storage : {config.storage.db_path}")
    print(f"  Stream  : {config.stream.mode}")
    print(f"  Users   : {len(config.auth.api_keys)} API key(s)")


def _serve(config: AppConfig, host: str | None, port: int | None) -> None:
    import uvicorn

    from turnstream.app import TurnstreamApp, create_api

    setup_logging(config.log_level, config.json_logs)
    api = create_api(TurnstreamApp(config))
    uvicorn.run(
        api,
        host=host or config.server.host,
        port=port or config.server.port,
        log_level=config.log_level.lower(),
    )


async def _ask(config: AppConfig, question: str, user_id: str, chat_id: str | None) -> None:
    from turnstream.ai.messages import split_conversation
    from turnstream.ai.stream import run_turn_stream
    from turnstream.app import TurnstreamApp

    setup_logging(config.log_level, config.json_logs)
    app = TurnstreamApp(config)
    await app.start()
    try:
        messages: list[dict[str, str]] = []
        if chat_id:
            previous = await app.chat_repo.get_chat(chat_id)
            if previous is not None:
                messages.extend(previous.messages)
        messages.append({"role": "user", "content": question})
        history, current_input = split_conversation(messages)

        executor, recorder = app.build_turn(messages, user_id, chat_id)
        try:
            async for chunk in run_turn_stream(
                executor,
                current_input,
                history,
                mode=config.stream.mode,
                error_sentinel=config.stream.error_sentinel,
            ):
                sys.stdout.write(chunk.decode("utf-8"))
                sys.stdout.flush()
        except Exception as e:
            print(f"\n[no answer] {type(e).__name__}: {e}", file=sys.stderr)
            sys.exit(1)
        print(f"\n\n(chat id: {recorder.chat_id})")
    finally:
        await app.stop()


if __name__ == "__main__":
    main()
