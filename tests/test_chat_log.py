"""Tests for ChatLog and per-entry token accounting."""

import sys
import types

import pytest

from omnitea.core.chat_log import ChatLog
from omnitea.token_counter import (
    ENTRY_OVERHEAD,
    TokenCounter,
    as_token_counter,
    create_token_counter,
    estimate_tokens,
)
from omnitea.types import ConversationEntry, Role

from conftest import char_counter


class FakeEncoding:
    def encode(self, text):
        return text.split()


def _fake_tiktoken(known_models):
    requested = []

    def encoding_for_model(model):
        requested.append(model)
        if model not in known_models:
            raise KeyError(model)
        return FakeEncoding()

    def get_encoding(name):
        requested.append(name)
        return FakeEncoding()

    module = types.SimpleNamespace(encoding_for_model=encoding_for_model, get_encoding=get_encoding)
    return module, requested


class TestEstimateTokens:
    def test_four_chars_per_token(self):
        assert estimate_tokens("a" * 400) == 100

    def test_minimum_one(self):
        assert estimate_tokens("") == 1
        assert estimate_tokens("abc") == 1


class TestCreateTokenCounter:
    def test_estimate_mode(self):
        counter = create_token_counter("estimate")
        assert isinstance(counter, TokenCounter)
        assert counter.count is estimate_tokens
        assert counter("a" * 40) == 10

    def test_callable_mode(self):
        counter = create_token_counter("callable:conftest:char_counter")
        assert counter("hello") == 5
        assert counter.mode == "callable:conftest:char_counter"

    def test_bad_callable_path(self):
        with pytest.raises(ValueError, match="Invalid callable counter"):
            create_token_counter("callable:no_function_part")

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown token counter mode"):
            create_token_counter("bytes")

    def test_tiktoken_uses_configured_model(self, monkeypatch):
        module, requested = _fake_tiktoken({"gpt-4o-mini"})
        monkeypatch.setitem(sys.modules, "tiktoken", module)
        counter = create_token_counter("tiktoken", model="gpt-4o-mini")
        assert requested == ["gpt-4o-mini"]
        assert counter("three word text") == 3
        assert counter.mode == "tiktoken:gpt-4o-mini"

    def test_tiktoken_unknown_model_falls_back_to_base_encoding(self, monkeypatch):
        module, requested = _fake_tiktoken(set())
        monkeypatch.setitem(sys.modules, "tiktoken", module)
        counter = create_token_counter("tiktoken", model="local-llama")
        assert requested == ["local-llama", "cl100k_base"]
        assert counter("a b") == 2


class TestEntryCost:
    def test_role_and_content_counted_separately(self):
        entry = ConversationEntry(role=Role.USER, content="hello")
        assert TokenCounter(char_counter).entry(entry) == len("user") + len("hello") + ENTRY_OVERHEAD

    def test_grows_with_content(self):
        counter = create_token_counter()
        short = ConversationEntry(role=Role.USER, content="x" * 40)
        long = ConversationEntry(role=Role.USER, content="x" * 400)
        assert counter.entry(long) > counter.entry(short)

    def test_deterministic(self):
        counter = create_token_counter()
        entry = ConversationEntry(role=Role.ASSISTANT, content="same text")
        assert counter.entry(entry) == counter.entry(entry)

    def test_plain_function_wrapped(self):
        counter = as_token_counter(char_counter)
        assert isinstance(counter, TokenCounter)
        assert as_token_counter(counter) is counter


class TestChatLog:
    def test_builders_return_new_log(self):
        empty = ChatLog()
        log = empty.system("sys").user("hi").assistant("hello")
        assert len(empty) == 0
        assert [e.role for e in log] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]

    def test_without_first(self):
        log = ChatLog().user("one").user("two")
        trimmed = log.without_first()
        assert [e.content for e in trimmed] == ["two"]
        assert len(log) == 2

    def test_token_count_is_sum_of_entries(self):
        log = ChatLog().system("sys").user("hi")
        expected = sum(TokenCounter(char_counter).entry(e) for e in log)
        assert log.token_count(char_counter) == expected

    def test_empty_log_counts_zero(self):
        assert ChatLog().token_count(estimate_tokens) == 0

    @pytest.mark.parametrize("content", ["", "a", "x" * 1000])
    @pytest.mark.parametrize("role", list(Role))
    def test_adding_entry_never_lowers_count(self, role, content):
        log = ChatLog().system("You are helpful.").user("earlier message")
        before = log.token_count(estimate_tokens)
        after = log.add(role, content).token_count(estimate_tokens)
        assert after >= before

    def test_payload_preserves_order(self):
        log = ChatLog().system("sys").user("q").assistant("a")
        assert log.to_payload() == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "q"},
            {"role": "assistant", "content": "a"},
        ]

    def test_equality(self):
        assert ChatLog().user("x") == ChatLog().user("x")
        assert ChatLog().user("x") != ChatLog().assistant("x")

    def test_system_entries(self):
        log = ChatLog().user("a").system("sys").user("b")
        assert [e.content for e in log.system_entries()] == ["sys"]
