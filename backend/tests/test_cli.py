"""
Tests for the ask-relay command-line client.
"""

import io
import json
from unittest.mock import Mock

import httpx
import pytest
import structlog

from ask_relay import cli
from ask_relay.client import StreamingConsumer


@pytest.fixture(autouse=True)
def reset_structlog():
    """cli.configure_logging changes global structlog config."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def relay_requests():
    return []


@pytest.fixture
def fake_relay(monkeypatch, relay_requests):
    """Route the CLI's consumer to a MockTransport relay."""
    responses = {}

    def handler(request):
        payload = json.loads(request.content)
        relay_requests.append(payload)
        if payload["prompt"] in responses:
            return responses[payload["prompt"]]
        return httpx.Response(200, text=f"answer to {payload['prompt']}")

    def make_consumer(url, timeout_seconds):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return StreamingConsumer(url, timeout_seconds=timeout_seconds, client=client)

    monkeypatch.setattr(cli, "StreamingConsumer", make_consumer)
    return responses


# ===== StreamPrinter =====


class TestStreamPrinter:
    """Rendering accumulated updates."""

    def test_prints_only_new_suffix(self):
        out = io.StringIO()
        printer = cli.StreamPrinter(Mock(active_handle=None), out=out)

        printer.on_loading_change(True)
        for update in ("He", "Hello", "Hello", "Hello world"):
            printer.on_update(update)
        printer.on_loading_change(False)

        assert out.getvalue() == "Hello world\n"

    def test_new_exchange_restarts_rendering(self):
        out = io.StringIO()
        printer = cli.StreamPrinter(Mock(active_handle=None), out=out)

        printer.on_loading_change(True)
        printer.on_update("one")
        printer.on_loading_change(False)
        printer.on_loading_change(True)
        printer.on_update("two")
        printer.on_loading_change(False)

        assert out.getvalue() == "one\ntwo\n"

    def test_no_trailing_newline_without_output(self):
        out = io.StringIO()
        printer = cli.StreamPrinter(Mock(active_handle=None), out=out)

        printer.on_loading_change(True)
        printer.on_loading_change(False)

        assert out.getvalue() == ""

    def test_error_reported_sanitized(self, capsys):
        printer = cli.StreamPrinter(Mock(active_handle=None), out=io.StringIO())

        printer.on_error(RuntimeError("rejected apikey=SECRET"))

        err = capsys.readouterr().err
        assert "SECRET" not in err
        assert err.startswith("[error]")
        assert printer.completed is False


# ===== Argument Parsing =====


class TestParser:
    """Command-line options."""

    def test_defaults_from_settings(self):
        args = cli.build_parser().parse_args([])

        assert args.prompt is None
        assert args.url == "http://localhost:8000/api/ask"
        assert args.timeout == 30.0
        assert args.no_context is False

    def test_options(self):
        args = cli.build_parser().parse_args(
            ["--url", "http://relay/api/ask", "--timeout", "5", "--no-context", "hi"]
        )

        assert args.prompt == "hi"
        assert args.url == "http://relay/api/ask"
        assert args.timeout == 5.0
        assert args.no_context is True


# ===== main =====


class TestSingleShot:
    """ask-relay "question"."""

    def test_streams_answer(self, fake_relay, relay_requests, capsys):
        exit_code = cli.main(["What is a relay?"])

        assert exit_code == 0
        assert capsys.readouterr().out == "answer to What is a relay?\n"
        assert relay_requests == [{"prompt": "What is a relay?"}]

    def test_relay_error(self, fake_relay, capsys):
        fake_relay["bad"] = httpx.Response(
            400, json={"error": "Prompt is too long. Maximum 10,000 characters allowed."}
        )

        exit_code = cli.main(["bad"])

        assert exit_code == 1
        assert "Prompt is too long" in capsys.readouterr().err


class TestInteractive:
    """Interactive session with follow-up context."""

    def _feed(self, monkeypatch, lines):
        replies = iter(lines)

        def fake_input(prompt=""):
            try:
                return next(replies)
            except StopIteration:
                raise EOFError from None

        monkeypatch.setattr("builtins.input", fake_input)

    def test_follow_up_sends_previous_answer(self, monkeypatch, fake_relay, relay_requests):
        self._feed(monkeypatch, ["first", "", "second", "exit"])

        assert cli.main([]) == 0

        assert relay_requests == [
            {"prompt": "first"},
            {"prompt": "second", "previousC1Response": "answer to first"},
        ]

    def test_no_context(self, monkeypatch, fake_relay, relay_requests):
        self._feed(monkeypatch, ["first", "second"])

        assert cli.main(["--no-context"]) == 0

        assert relay_requests == [{"prompt": "first"}, {"prompt": "second"}]

    def test_failed_answer_not_used_as_context(
        self, monkeypatch, fake_relay, relay_requests
    ):
        fake_relay["first"] = httpx.Response(204)
        self._feed(monkeypatch, ["first", "second"])

        cli.main([])

        assert relay_requests[1] == {"prompt": "second"}
