"""CLI entrypoint for bubbletalk."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import metadata
import logging
import sys
from typing import TextIO

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .app import BubbleTalkApp
from .chat import ChatClient
from .config import ensure_config_dir, load_config
from .exceptions import BubbleTalkError
from .logging_utils import configure_logging
from .models import Session, utc_now
from .persistence import HistoryStore, SessionIndex, default_data_dir

LOGGER = logging.getLogger(__name__)

ERROR_BADGE = " ERROR "


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bubbletalk",
        description="bubbletalk - chat with Ollama models in your terminal",
    )
    parser.add_argument("-v", "--version", action="store_true", help="Print version and exit")
    parser.add_argument("--model", default="", help="Model to use (defaults to ollama.model)")
    parser.add_argument("--prompt", default="", help="Run a single prompt and print the reply")
    parser.add_argument(
        "--images",
        default="",
        help="Comma separated image paths (png/jpg/jpeg) to send with --prompt",
    )
    parser.add_argument("--resume", metavar="ID", help="Resume a saved chat")
    parser.add_argument("--delete", metavar="ID", help="Delete a saved chat and its history")
    parser.add_argument("--list", action="store_true", help="List saved chats")
    parser.add_argument("--title", default="", help="Title for a new chat")
    parser.add_argument("--system", default="", help="System message for a new chat")
    parser.add_argument(
        "--anonymous",
        action="store_true",
        help="Do not save the new chat",
    )
    parser.add_argument(
        "--multimodal",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Allow image attachments (default: ask the model)",
    )
    return parser


def _split_images(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def _read_piped_stdin(stream: TextIO | None = None) -> str:
    stream = stream if stream is not None else sys.stdin
    if stream is None or stream.isatty():
        return ""
    return stream.read()


def build_prompt(prompt: str, piped: str) -> str:
    """Combine ``--prompt`` with piped input the way one-shot mode expects."""
    if not piped:
        return prompt
    if not prompt:
        return piped
    return f"Context: {piped}\n\nQuestion: {prompt}"


def _print_error(message: str) -> None:
    console = Console(stderr=True)
    console.print(Text(ERROR_BADGE, style="bold white on #e64553"), Text(message))


async def _run_one_shot(
    client: ChatClient, prompt: str, images: list[str], out: TextIO | None = None
) -> None:
    out = out if out is not None else sys.stdout
    async for chunk in client.generate(prompt, images):
        out.write(chunk)
        out.flush()
    out.write("\n")


def _print_sessions(index: SessionIndex) -> None:
    sessions = index.list_sessions()
    console = Console()
    if not sessions:
        console.print("No saved chats.")
        return
    table = Table("ID", "Title", "Model", "Updated")
    for session in sessions:
        table.add_row(
            session.id,
            session.title,
            session.model_name,
            session.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def _detect_multimodal(client: ChatClient) -> bool:
    try:
        return asyncio.run(client.supports_vision())
    except BubbleTalkError as exc:
        LOGGER.warning(
            "cli.capabilities.failed",
            extra={"event": "cli.capabilities.failed", "error": str(exc)},
        )
        return False


def _open_session(
    args: argparse.Namespace,
    index: SessionIndex,
    store: HistoryStore,
    client: ChatClient,
) -> Session:
    if args.resume:
        session = index.get(args.resume)
        session.history = store.load_history(session.id)
        if args.model:
            session.model_name = args.model
        if args.multimodal is not None:
            session.is_multimodal = args.multimodal
        return session
    multimodal = args.multimodal
    if multimodal is None:
        multimodal = _detect_multimodal(client)
    session = Session.create(
        title=args.title or f"Chat {utc_now():%Y-%m-%d %H:%M}",
        model_name=client.model,
        system_message=args.system,
        is_multimodal=multimodal,
        is_anonymous=args.anonymous,
        exists=index.contains,
    )
    if not session.is_anonymous:
        index.add(session)
    return session


def _persist(session: Session, index: SessionIndex, store: HistoryStore) -> None:
    if session.is_anonymous:
        return
    store.save_history(session.id, session.history)
    session.updated_at = utc_now()
    index.add(session)


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the chat."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("bubbletalk")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"bubbletalk {version}")
        return

    ensure_config_dir()
    config = load_config()
    configure_logging(config["logging"])
    ollama_cfg = config["ollama"]
    client = ChatClient(
        host=str(ollama_cfg["host"]),
        model=args.model or str(ollama_cfg["model"]),
        timeout=ollama_cfg.get("timeout"),
    )
    data_dir = default_data_dir(str(config["persistence"]["data_dir"]))
    store = HistoryStore(data_dir)
    index = SessionIndex(data_dir / "sessions.json")

    try:
        if args.list:
            _print_sessions(index)
            return
        if args.delete:
            index.get(args.delete)
            store.delete_history(args.delete)
            index.remove(args.delete)
            print(f"Deleted chat {args.delete}")
            return

        prompt = build_prompt(args.prompt, _read_piped_stdin())
        if prompt.strip():
            asyncio.run(_run_one_shot(client, prompt, _split_images(args.images)))
            return

        session = _open_session(args, index, store, client)
        if session.model_name != client.model:
            client = ChatClient(
                host=str(ollama_cfg["host"]),
                model=session.model_name,
                timeout=ollama_cfg.get("timeout"),
            )
        BubbleTalkApp(session, config=config, client=client).run()
        _persist(session, index, store)
    except BubbleTalkError as exc:
        LOGGER.error("cli.failed", extra={"event": "cli.failed", "error_type": type(exc).__name__})
        _print_error(str(exc))
        sys.exit(1)


if __name__ == "__main__":
    main()
