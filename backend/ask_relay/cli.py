"""
Command-line client for a running ask relay.

Usage:
  # One question, answer streamed to stdout
  ask-relay "Compare Python web frameworks"

  # Interactive session; follow-ups send the previous answer as context
  ask-relay

  # Point at another relay, shorter timeout, no follow-up context
  ask-relay --url http://relay.internal:8000/api/ask --timeout 10 --no-context

Ctrl-C while an answer is streaming cancels that exchange and returns to the
prompt; Ctrl-C (or Ctrl-D) at the prompt exits.
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import TextIO

import structlog

from .client import ExchangeHandle, StreamingConsumer
from .core.config import get_settings
from .shared.sanitizers import sanitize_exception_message

PROMPT = "You: "
EXIT_COMMANDS = frozenset({"exit", "quit", ":q"})


class StreamPrinter:
    """
    Renders accumulated updates by writing only the newly appended suffix.

    Also remembers the handle of the exchange it is rendering so the caller
    can tell a completed answer from a cancelled or timed-out one.
    """

    def __init__(self, consumer: StreamingConsumer, out: TextIO | None = None):
        self.consumer = consumer
        self.out = out or sys.stdout
        self.handle: ExchangeHandle | None = None
        self.error: Exception | None = None
        self._printed = 0

    def on_update(self, accumulated: str) -> None:
        suffix = accumulated[self._printed :]
        if suffix:
            self.out.write(suffix)
            self.out.flush()
        self._printed = len(accumulated)

    def on_loading_change(self, loading: bool) -> None:
        if loading:
            self.handle = self.consumer.active_handle
            self.error = None
            self._printed = 0
        elif self._printed:
            self.out.write("\n")
            self.out.flush()

    def on_error(self, exc: Exception) -> None:
        self.error = exc
        print(f"[error] {sanitize_exception_message(exc)}", file=sys.stderr)

    @property
    def completed(self) -> bool:
        """True when the last exchange finished without error or cancellation."""
        return (
            self.handle is not None
            and not self.handle.cancelled
            and self.error is None
        )


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="ask-relay",
        description="Stream answers from an ask relay",
    )
    parser.add_argument(
        "prompt",
        nargs="?",
        help="Question to ask (omit for an interactive session)",
    )
    parser.add_argument(
        "--url",
        default=settings.relay_url,
        help=f"Relay ask endpoint (default: {settings.relay_url})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.exchange_timeout_seconds,
        help="Seconds before an exchange is cancelled "
        f"(default: {settings.exchange_timeout_seconds:g})",
    )
    parser.add_argument(
        "--no-context",
        action="store_true",
        help="Do not send the previous answer with follow-up questions",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (to stderr)",
    )
    return parser


def configure_logging(verbose: bool) -> None:
    """Send structlog output to stderr so stdout carries only the answer."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


async def ask(
    consumer: StreamingConsumer,
    printer: StreamPrinter,
    prompt: str,
    previous_response: str | None = None,
) -> str:
    """
    Run one exchange, with SIGINT cancelling it instead of killing the process.

    Returns the accumulated answer (partial when interrupted or timed out).
    """
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, consumer.cancel, "interrupted")
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # No loop signal handlers (Windows); Ctrl-C arrives as KeyboardInterrupt
        handler_installed = False

    try:
        answer = await consumer.run_exchange(
            prompt,
            previous_response=previous_response,
            on_update=printer.on_update,
            on_loading_change=printer.on_loading_change,
            on_error=printer.on_error,
        )
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)

    handle = printer.handle
    if handle is not None and handle.cancelled:
        print(f"[{handle.cancel_reason}]", file=sys.stderr)
    return answer


def interactive(
    runner: asyncio.Runner,
    consumer: StreamingConsumer,
    printer: StreamPrinter,
    use_context: bool,
) -> int:
    """Read prompts until EOF or an exit command, streaming each answer."""
    previous: str | None = None
    while True:
        try:
            prompt = input(PROMPT).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            return 0

        if not prompt:
            continue
        if prompt.lower() in EXIT_COMMANDS:
            return 0

        try:
            answer = runner.run(
                ask(consumer, printer, prompt, previous if use_context else None)
            )
        except KeyboardInterrupt:
            print("[interrupted]", file=sys.stderr)
            continue

        if printer.completed and answer:
            previous = answer


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    consumer = StreamingConsumer(args.url, timeout_seconds=args.timeout)
    printer = StreamPrinter(consumer)

    with asyncio.Runner() as runner:
        try:
            if args.prompt is not None:
                try:
                    runner.run(ask(consumer, printer, args.prompt))
                except KeyboardInterrupt:
                    return 130
                return 0 if printer.completed else 1
            return interactive(runner, consumer, printer, not args.no_context)
        finally:
            runner.run(consumer.aclose())


if __name__ == "__main__":
    sys.exit(main())
