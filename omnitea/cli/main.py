"""CLI: omnitea chat, assemble, render, config validate."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import sys
from pathlib import Path

from ..bot import TurnHandler
from ..channels.memory import MemoryChannel
from ..config import VALID_LOG_LEVELS, load_config, load_system_prompt, validate_config
from ..core.assembler import WindowAssembler
from ..core.ingest import HttpAttachmentFetcher, MessageIngestor
from ..core.markers import MarkerParser
from ..logging_setup import setup_logging
from ..providers import create_provider
from ..render.chunker import render
from ..render.renderers import create_renderer
from ..token_counter import create_token_counter
from ..types import Author, ImageChunk, TextChunk


def _load_history(path: str, channel: MemoryChannel) -> None:
    """Post messages from a JSON list of {author, content, self} objects."""
    raw_messages = json.loads(Path(path).read_text())
    if not isinstance(raw_messages, list) or not raw_messages:
        raise ValueError("History file must be a non-empty JSON list")
    authors: dict[str, Author] = {}
    for raw in raw_messages:
        if raw.get("self"):
            author = channel.bot
        else:
            name = raw.get("author", "user")
            author = authors.setdefault(name, Author(id=len(authors) + 1, name=name))
        channel.post(author, raw.get("content", ""))


def cmd_assemble(args):
    """Assemble the window for the last message of a JSON history file."""
    config = load_config(args.config)
    channel = MemoryChannel(name=config.platform.channel_name)
    _load_history(args.input, channel)

    assembler = WindowAssembler(
        channel,
        config=config.assembler,
        token_counter=create_token_counter(config.assembler.token_counter, model=config.completion.model),
        default_prompt=load_system_prompt(config),
        markers=MarkerParser(config.markers.barrier_prefix, config.markers.aside_prefix),
    )
    window = asyncio.run(assembler.assemble(channel.history[-1]))

    if args.json:
        print(json.dumps({
            "messages": window.chat_log.to_payload(),
            "token_count": window.token_count,
            "barrier_found": window.barrier_found,
            "pages_fetched": window.pages_fetched,
        }, indent=2))
        return

    print(f"Budget:   {config.assembler.token_budget:,} tokens")
    print(f"Tokens:   {window.token_count:,}")
    print(f"Messages: {len(window.messages)} of {len(channel.history)}")
    print(f"Pages:    {window.pages_fetched}")
    print(f"Barrier:  {'yes' if window.barrier_found else 'no'}")
    print("-" * 60)
    for entry in window.chat_log:
        print(f"[{entry.role.value}] {entry.content}")


def cmd_render(args):
    """Render reply text into text and image chunks."""
    config = load_config(args.config)
    if args.strategy:
        config.renderer.strategy = args.strategy
    if args.work_dir:
        config.renderer.work_dir = args.work_dir

    text = args.text if args.text is not None else sys.stdin.read()
    renderer = create_renderer(config.renderer)
    chunks = asyncio.run(render(text, renderer))

    for i, chunk in enumerate(chunks, 1):
        if isinstance(chunk, TextChunk):
            print(f"--- {i}: text ---")
            print(chunk.text)
        elif isinstance(chunk, ImageChunk):
            print(f"--- {i}: image ({len(chunk.paths)} file(s)) ---")
            print(chunk.source)
            for path in chunk.paths:
                print(f"  {path}")


def cmd_chat(args):
    """Interactive chat against a local in-memory channel."""
    config = load_config(args.config)
    if not config.completion.api_key:
        print("No completion API key. Set OPENAI_KEY or completion.api_key.", file=sys.stderr)
        sys.exit(1)

    channel = MemoryChannel(name=config.platform.channel_name)
    handler = TurnHandler(
        config,
        history=channel,
        sender=channel,
        provider=create_provider(config.completion),
        renderer=create_renderer(config.renderer),
        token_counter=create_token_counter(config.assembler.token_counter, model=config.completion.model),
        system_prompt=load_system_prompt(config),
        ingestor=MessageIngestor(fetcher=HttpAttachmentFetcher()),
    )
    user = Author(id=1, name=args.name or getpass.getuser())

    async def _loop():
        print(f"Chatting in #{channel.name} as {user.name}. Ctrl+D to quit.")
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                print()
                return
            if not line.strip():
                continue
            seen = len(channel.sent)
            status = await handler.on_message(channel.post(user, line))
            for item in channel.sent[seen:]:
                if item.kind == "text":
                    print(item.value)
                else:
                    print(f"[{item.kind}] {item.value}")
            if status.value.endswith("_failed"):
                print(f"(no reply: {status.value})", file=sys.stderr)

    asyncio.run(_loop())


def cmd_config_validate(args):
    """Validate config file."""
    try:
        config = load_config(args.config)
    except Exception as e:
        print(f"Error loading config: {e}")
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        print("Config validation errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)

    print("Config is valid.")
    print(f"  Token budget:  {config.assembler.token_budget:,}")
    print(f"  Page size:     {config.assembler.page_size}")
    print(f"  Channel:       {config.platform.channel_name}")
    print(f"  Model:         {config.completion.model}")
    print(f"  Renderer:      {config.renderer.strategy}")


def main():
    parser = argparse.ArgumentParser(
        prog="omnitea",
        description="omnitea: chat bot with a token-bounded context window",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--log-level", help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command")

    chat_parser = subparsers.add_parser("chat", help="Interactive chat on a local channel")
    chat_parser.add_argument("--name", help="Display name to chat as")

    assemble_parser = subparsers.add_parser("assemble", help="Assemble the window for a JSON history")
    assemble_parser.add_argument("input", help="JSON list of {author, content, self}")
    assemble_parser.add_argument("--json", action="store_true", help="Print the window as JSON")

    render_parser = subparsers.add_parser("render", help="Render reply text into chunks")
    render_parser.add_argument("text", nargs="?", help="Reply text (default: stdin)")
    render_parser.add_argument("--strategy", choices=["markdown", "latex"], help="Renderer to use")
    render_parser.add_argument("--work-dir", help="Directory for rendered images")

    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.log_level:
        level = args.log_level
    else:
        try:
            level = load_config(args.config).log_level
        except Exception:
            level = "INFO"
    setup_logging(level if level.upper() in VALID_LOG_LEVELS else "INFO")

    if args.command == "chat":
        cmd_chat(args)
    elif args.command == "assemble":
        cmd_assemble(args)
    elif args.command == "render":
        cmd_render(args)
    elif args.command == "config":
        if args.config_command == "validate":
            cmd_config_validate(args)
        else:
            print("Usage: omnitea config validate")
            sys.exit(1)


if __name__ == "__main__":
    main()
