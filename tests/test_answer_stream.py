"""Tests for incremental final-answer extraction."""
import json

import pytest

from turnstream.ai.answer_stream import FinalAnswerExtractor


def feed_all(text: str, size: int) -> tuple[FinalAnswerExtractor, list[str]]:
    extractor = FinalAnswerExtractor()
    pieces = []
    for i in range(0, len(text), size):
        out = extractor.feed(text[i:i + size])
        if out:
            pieces.append(out)
    return extractor, pieces


@pytest.mark.parametrize("size", [1, 2, 3, 7, 1000])
def test_streams_decoded_answer_for_any_chunking(size):
    answer = 'line1\nshe said "hi" \\ café 😀 / done'
    text = "Action:\n```json\n" + json.dumps({"action": "Final Answer", "action_input": answer}) + "\n```"
    extractor, pieces = feed_all(text, size)
    assert "".join(pieces) == answer
    assert extractor.streamed == answer
    assert extractor.complete


def test_answer_released_before_blob_closes():
    extractor = FinalAnswerExtractor()
    assert extractor.feed('{"action": "Final Answer", ') == ""
    assert extractor.active
    assert extractor.feed('"action_input": "The ans') == "The ans"
    assert extractor.feed('wer is 4') == "wer is 4"
    assert not extractor.complete
    assert extractor.feed('"}') == ""
    assert extractor.complete


def test_tool_action_streams_nothing():
    text = json.dumps({"action": "search", "action_input": "Final Answer"})
    extractor, pieces = feed_all(text, 4)
    assert pieces == []
    assert not extractor.active


def test_non_string_answer_is_left_for_the_parser():
    text = json.dumps({"action": "Final Answer", "action_input": {"value": 4}})
    extractor, pieces = feed_all(text, 3)
    assert pieces == []
    assert extractor.streamed == ""


def test_reversed_key_order_streams_nothing():
    text = '{"action_input": "4", "action": "Final Answer"}'
    extractor, pieces = feed_all(text, 5)
    assert pieces == []


def test_text_without_directive_streams_nothing():
    extractor, pieces = feed_all("I am not sure what to do here.", 4)
    assert pieces == []
    assert not extractor.active
