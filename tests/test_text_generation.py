from __future__ import annotations

import logging

import pytest
import requests

from conftest import FakeResponse, FakeSession
from run_companion.clients.text_generation import TextGenerationClient
from run_companion.errors import NetworkFailureError, ParseFailureError


def _reply(content) -> FakeResponse:
    return FakeResponse(data={"choices": [{"message": {"content": content}}]})


def _client(*responses) -> TextGenerationClient:
    return TextGenerationClient(
        api_key="sk-test",
        model="gpt-4",
        temperature=0.8,
        base_url="https://llm.example.test/v1/",
        session=FakeSession(*responses),
    )


def test_complete_posts_chat_request() -> None:
    client = _client(_reply("Keep going!"))

    assert client.complete("Motivate me", system="You are a coach") == "Keep going!"

    method, url, kwargs = client._session.calls[0]
    assert method == "POST"
    assert url == "https://llm.example.test/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    body = kwargs["json"]
    assert body["model"] == "gpt-4"
    assert body["temperature"] == 0.8
    assert body["messages"] == [
        {"role": "system", "content": "You are a coach"},
        {"role": "user", "content": "Motivate me"},
    ]


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        {"choices": []},
        {"choices": [{"message": {"content": "   "}}]},
        {"choices": [{"message": None}]},
        {"choices": {"message": {"content": "not a list"}}},
    ],
)
def test_complete_rejects_empty_replies(payload) -> None:
    client = _client(FakeResponse(data=payload))

    with pytest.raises(ParseFailureError):
        client.complete("hi")


def test_complete_raises_on_error_status() -> None:
    error = {"error": {"message": "Rate limit", "type": "requests"}}
    client = _client(FakeResponse(status_code=429, data=error))

    with pytest.raises(NetworkFailureError, match="Rate limit"):
        client.complete("hi")


def test_short_phrase_strips_quotes() -> None:
    client = _client(_reply('  "You are flying!"  '))
    assert client.generate_short_phrase("go") == "You are flying!"


def test_short_phrase_swallows_failures(caplog) -> None:
    client = _client(requests.ConnectionError("no route to host"))

    with caplog.at_level(logging.WARNING):
        assert client.generate_short_phrase("go") is None

    assert "Phrase generation failed" in caplog.text


def test_short_phrase_of_only_quotes_is_none() -> None:
    client = _client(_reply('""'))
    assert client.generate_short_phrase("go") is None


def test_short_phrase_of_malformed_choices_is_none(caplog) -> None:
    client = _client(FakeResponse(data={"choices": {"0": {"message": "hi"}}}))

    with caplog.at_level(logging.WARNING):
        assert client.generate_short_phrase("go") is None

    assert "Phrase generation failed" in caplog.text
