#!/usr/bin/env python3
"""main.py

Interactive terminal client for yinyang-chat.
Talks to the generation orchestrator directly (no HTTP server needed) and
renders each reply as a column of chat bubbles using the Rich library.
"""

from __future__ import annotations

# Standard Library
import asyncio
import logging
import mimetypes
import sys
from pathlib import Path
from typing import Any, NoReturn

# Third-Party Libraries
from dotenv import load_dotenv
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.theme import Theme

# Local Modules
from yinyang.config import get_settings
from yinyang.errors import UnsupportedAttachment
from yinyang.history import normalize_history
from yinyang.models import BinaryAttachment, Personality
from yinyang.orchestrator import GenerationOrchestrator, TurnInput, build_orchestrator

# Load environment variables from .env file
load_dotenv()

custom_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "yin": "bold white",
        "yang": "bold magenta",
    }
)
console = Console(theme=custom_theme)


class Session:
    """Local conversation state for the REPL."""

    def __init__(self, personality: Personality = Personality.YIN) -> None:
        self.personality = personality
        self.history: list[dict[str, Any]] = []
        self.last_description: str | None = None

    def record(self, prompt: str, bubbles: tuple[str, ...]) -> None:
        self.history.append({"role": "user", "parts": [{"text": prompt}]})
        self.history.append(
            {"role": "model", "parts": [{"text": b} for b in bubbles]}
        )

    def clear(self) -> None:
        self.history.clear()
        self.last_description = None


def display_help() -> None:
    """Display available commands and usage information."""
    help_text = """
**Available Commands:**

- `/help` - Show this help message
- `/clear` - Clear conversation history
- `/personality yin|yang` - Switch voice
- `/image <path> [prompt]` - Share a photo (reply, caption and description)
- `/stats` - Show session statistics
- `/quit` or `/exit` - Exit
- Any other text - Chat
    """
    console.print(Panel(Markdown(help_text), title="Help", border_style="cyan"))


def display_stats(session: Session) -> None:
    settings = get_settings()
    stats_text = f"""
**Session:**

- Personality: `{session.personality.value}`
- Turns in history: {len(session.history)}
- Provider: `{settings.model_provider}`
- Models: `{settings.primary_model}` → `{settings.fallback_model}`
    """
    console.print(Panel(Markdown(stats_text), title="Statistics", border_style="cyan"))


def display_bubbles(session: Session, bubbles: tuple[str, ...]) -> None:
    style = session.personality.value
    for bubble in bubbles:
        console.print(
            Panel(bubble, title=f"[{style}]{style}[/{style}]", border_style=style, expand=False)
        )
    console.print()


def load_image(path: str) -> BinaryAttachment:
    """Read an image file from disk as an attachment.

    Raises:
        UnsupportedAttachment: If the file type is not an allowed image type.
    """
    mime_type, _ = mimetypes.guess_type(path)
    attachment = BinaryAttachment(
        mime_type=mime_type or "application/octet-stream",
        data=Path(path).expanduser().read_bytes(),
        filename=Path(path).name,
    )
    if not attachment.is_supported:
        raise UnsupportedAttachment(mime_type)
    return attachment


def chat(orchestrator: GenerationOrchestrator, session: Session, prompt: str) -> None:
    turn = TurnInput(
        personality=session.personality,
        prompt=prompt,
        history=normalize_history(session.history),
    )
    with console.status("[bold green]Thinking...", spinner="dots"):
        reply = asyncio.run(orchestrator.reply(turn))
    display_bubbles(session, reply.bubbles)
    session.record(prompt, reply.bubbles)


def share_image(orchestrator: GenerationOrchestrator, session: Session, args: str) -> None:
    path, _, prompt = args.partition(" ")
    turn = TurnInput(
        personality=session.personality,
        prompt=prompt,
        attachments=(load_image(path),),
        history=normalize_history(session.history),
        previous_description=session.last_description,
    )
    with console.status("[bold green]Looking...", spinner="dots"):
        result = asyncio.run(orchestrator.run(turn))

    if result.transitional_comment:
        console.print(f"[info]↪ {result.transitional_comment}[/info]")
    console.print(f"[success]Caption:[/success] {result.caption}")
    console.print(f"[info]Description:[/info] {result.description}\n")
    if result.reply is not None:
        display_bubbles(session, result.reply.bubbles)
        session.record(prompt or f"[photo: {result.description}]", result.reply.bubbles)
    if result.description:
        session.last_description = result.description


def main() -> NoReturn:
    """Main entry point for the yinyang CLI."""
    settings = get_settings()
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    console.print(f"Provider: {settings.model_provider}", style="info")
    console.print(
        f"Models: {settings.primary_model} (fallback {settings.fallback_model})\n",
        style="info",
    )
    orchestrator = build_orchestrator(settings)
    session = Session()

    console.print(
        "Type [bold]/help[/bold] for commands, or start chatting!\n", style="info"
    )

    while True:
        try:
            user_input = Prompt.ask(f"[bold blue]You ({session.personality.value})[/bold blue]").strip()

            if not user_input:
                continue

            command, _, args = user_input.partition(" ")
            command = command.lower()

            if command in ["/quit", "/exit"]:
                console.print("\nGoodbye!\n", style="success")
                sys.exit(0)

            elif command == "/help":
                display_help()

            elif command == "/clear":
                session.clear()
                console.print("Conversation history cleared.\n", style="success")

            elif command == "/stats":
                display_stats(session)

            elif command == "/personality":
                session.personality = Personality.parse(args)
                console.print(f"Now talking to {session.personality.value}.\n", style="success")

            elif command == "/image":
                if not args.strip():
                    console.print("Usage: /image <path> [prompt]\n", style="warning")
                    continue
                share_image(orchestrator, session, args.strip())

            else:
                chat(orchestrator, session, user_input)

        except KeyboardInterrupt:
            console.print("\n\nInterrupted. Goodbye!\n", style="warning")
            sys.exit(0)

        except Exception as exc:
            console.print(f"\nError: {exc}\n", style="error")
            console.print(
                "You can continue chatting or type /quit to exit.\n", style="info"
            )


if __name__ == "__main__":
    main()
