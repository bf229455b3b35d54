#!/usr/bin/env python3
"""
Model Client Tests
===================
Provider error mapping and request shape, using a fake Anthropic client.
Zero LLM calls.
"""
from __future__ import annotations
import sys
from pathlib import Path
from types import SimpleNamespace

sys.path.insert(0, str(Path(__file__).parent.parent))

import anthropic
import httpx

from promptforge.attachments import ImagePart
from promptforge.errors import QuotaExceeded, TransportFailure
from promptforge.model_client import ModelClient

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class FakeMessages:
    def __init__(self, outcome):
        self.outcome = outcome
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def _client(outcome) -> tuple[ModelClient, FakeMessages]:
    messages = FakeMessages(outcome)
    fake = SimpleNamespace(messages=messages)
    return ModelClient(api_key="test-key", client=fake), messages


def _response(*texts: str):
    return SimpleNamespace(
        model="claude-haiku-4-5",
        stop_reason="end_turn",
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
        content=[SimpleNamespace(type="text", text=t) for t in texts],
    )


def _status_error(cls, status: int):
    return cls("boom", response=httpx.Response(status, request=_REQUEST), body=None)


def _expect(client: ModelClient, exc_type) -> None:
    try:
        client.invoke("hi", "claude-haiku-4-5")
    except exc_type:
        return
    raise AssertionError(f"expected {exc_type.__name__}")


def test_returns_joined_text():
    client, messages = _client(_response("  Who is ", "the audience?\n"))
    assert client.invoke("instruction", "claude-haiku-4-5") == "Who is the audience?"
    assert messages.kwargs["model"] == "claude-haiku-4-5"
    assert messages.kwargs["messages"][0]["role"] == "user"
    print("  [OK] text blocks joined and trimmed")


def test_image_sent_as_separate_block():
    client, messages = _client(_response("[READY]"))
    image = ImagePart(data=b"\x89PNG\r\n\x1a\n", media_type="image/png")
    client.invoke("instruction", "claude-sonnet-4-5", image)
    content = messages.kwargs["messages"][0]["content"]
    assert [block["type"] for block in content] == ["image", "text"]
    assert content[1]["text"] == "instruction"
    print("  [OK] image block + text block")


def test_rate_limit_maps_to_quota():
    client, _ = _client(_status_error(anthropic.RateLimitError, 429))
    _expect(client, QuotaExceeded)
    print("  [OK] RateLimitError -> QuotaExceeded")


def test_other_status_errors_map_to_transport():
    client, _ = _client(_status_error(anthropic.InternalServerError, 500))
    _expect(client, TransportFailure)
    print("  [OK] 500 -> TransportFailure")


def test_connection_and_timeout_map_to_transport():
    client, _ = _client(anthropic.APIConnectionError(request=_REQUEST))
    _expect(client, TransportFailure)
    client, _ = _client(anthropic.APITimeoutError(request=_REQUEST))
    _expect(client, TransportFailure)
    print("  [OK] connection/timeout -> TransportFailure")


def test_missing_api_key():
    _expect(ModelClient(api_key=""), TransportFailure)
    print("  [OK] missing key -> TransportFailure")


def test_errors_are_retryable():
    assert QuotaExceeded.retryable and TransportFailure.retryable
    assert QuotaExceeded("x").to_dict()["kind"] == "quota_exceeded"
    print("  [OK] taxonomy flags")


if __name__ == "__main__":
    print("\n── Model Client ──")
    test_returns_joined_text()
    test_image_sent_as_separate_block()
    test_rate_limit_maps_to_quota()
    test_other_status_errors_map_to_transport()
    test_connection_and_timeout_map_to_transport()
    test_missing_api_key()
    test_errors_are_retryable()
    print("✅ ALL TESTS PASSED")
