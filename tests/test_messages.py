"""Tests for message normalization and conversation splitting."""
import pytest

from turnstream.ai.messages import (
    AssistantMessage,
    GenericMessage,
    HumanMessage,
    normalize_message,
    split_conversation,
    to_api_messages,
)


def test_roles_map_to_variants():
    assert normalize_message({"role": "user", "content": "hi"}) == HumanMessage("hi")
    assert normalize_message({"role": "assistant", "content": "hello"}) == AssistantMessage("hello")
    generic = normalize_message({"role": "function", "content": "{}"})
    assert isinstance(generic, GenericMessage)
    assert generic.role == "function"
    assert generic.content == "{}"


def test_content_preserved_exactly():
    content = "  spaces, unicode ✓ and\nnewlines  "
    assert normalize_message({"role": "user", "content": content}).content == content


def test_split_keeps_order_and_excludes_last():
    messages = [
        {"role": "system", "content": "be brief"},
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "answer"},
        {"role": "user", "content": "second"},
    ]
    history, current = split_conversation(messages)
    assert current == "second"
    assert [m.content for m in history] == ["be brief", "first", "answer"]
    assert [type(m) for m in history] == [GenericMessage, HumanMessage, AssistantMessage]


def test_split_single_message_has_empty_history():
    history, current = split_conversation([{"role": "user", "content": "What's 2+2?"}])
    assert history == []
    assert current == "What's 2+2?"


def test_split_rejects_empty_conversation():
    with pytest.raises(ValueError):
        split_conversation([])


def test_api_messages_fold_unknown_roles():
    history = [
        GenericMessage("rules", "system"),
        HumanMessage("q"),
        GenericMessage("42", "tool"),
        AssistantMessage("a"),
    ]
    assert to_api_messages(history) == [
        {"role": "system", "content": "rules"},
        {"role": "user", "content": "q"},
        {"role": "user", "content": "tool: 42"},
        {"role": "assistant", "content": "a"},
    ]
