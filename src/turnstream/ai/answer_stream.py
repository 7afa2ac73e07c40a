"""Incremental extraction of the final answer from a streaming model response.

The model writes its answer as the ``action_input`` string of a
``"Final Answer"`` JSON directive. Waiting for the whole blob before showing
anything would defeat streaming, so this decoder watches the raw tokens and
releases the decoded characters of that string as soon as they arrive.
"""

from __future__ import annotations

import re
from enum import Enum

from turnstream.ai.output_parser import FINAL_ANSWER_ACTION

_ACTION_PATTERN = re.compile(r'"action"\s*:\s*"((?:[^"\\]|\\.)*)"')
_INPUT_PATTERN = re.compile(r'"action_input"\s*:\s*(\S)')

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}


class _Phase(Enum):
    SEEK_ACTION = "seek_action"
    SEEK_INPUT = "seek_input"
    IN_STRING = "in_string"
    DONE = "done"
    INERT = "inert"


class FinalAnswerExtractor:
    """Feed raw model text; get back newly decoded final-answer text."""

    def __init__(self) -> None:
        self._buffer = ""
        self._cursor = 0
        self._phase = _Phase.SEEK_ACTION
        self.streamed = ""

    @property
    def active(self) -> bool:
        """True once the directive is known to be a final answer."""
        return self._phase in (_Phase.SEEK_INPUT, _Phase.IN_STRING, _Phase.DONE)

    @property
    def complete(self) -> bool:
        return self._phase is _Phase.DONE

    def feed(self, chunk: str) -> str:
        self._buffer += chunk

        if self._phase is _Phase.SEEK_ACTION:
            match = _ACTION_PATTERN.search(self._buffer)
            if match is None:
                return ""
            if match.group(1) != FINAL_ANSWER_ACTION:
                self._phase = _Phase.INERT
                return ""
            self._phase = _Phase.SEEK_INPUT
            self._cursor = match.end()

        if self._phase is _Phase.SEEK_INPUT:
            match = _INPUT_PATTERN.search(self._buffer, self._cursor)
            if match is None:
                return ""
            if match.group(1) != '"':
                # Non-string answers are emitted whole once parsed.
                self._phase = _Phase.INERT
                return ""
            self._phase = _Phase.IN_STRING
            self._cursor = match.end()

        if self._phase is _Phase.IN_STRING:
            text = self._decode_available()
            self.streamed += text
            return text

        return ""

    def _decode_available(self) -> str:
        out: list[str] = []
        buf = self._buffer
        i = self._cursor
        while i < len(buf):
            ch = buf[i]
            if ch == '"':
                self._phase = _Phase.DONE
                i += 1
                break
            if ch != "\\":
                out.append(ch)
                i += 1
                continue
            if i + 1 >= len(buf):
                break
            esc = buf[i + 1]
            if esc in _SIMPLE_ESCAPES:
                out.append(_SIMPLE_ESCAPES[esc])
                i += 2
                continue
            if esc == "u":
                decoded, consumed = _decode_unicode_escape(buf, i)
                if consumed == 0:
                    break
                out.append(decoded)
                i += consumed
                continue
            out.append(esc)
            i += 2
        self._cursor = i
        return "".join(out)


def _decode_unicode_escape(buf: str, start: int) -> tuple[str, int]:
    """Decode ``\\uXXXX`` (and a following low surrogate) at *start*.

    Returns ``("", 0)`` when more input is needed.
    """
    if start + 6 > len(buf):
        return "", 0
    try:
        code = int(buf[start + 2:start + 6], 16)
    except ValueError:
        return buf[start + 1:start + 6], 6
    if 0xD800 <= code <= 0xDBFF:
        if start + 12 > len(buf):
            return "", 0
        if buf[start + 6:start + 8] == "\\u":
            try:
                low = int(buf[start + 8:start + 12], 16)
            except ValueError:
                low = -1
            if 0xDC00 <= low <= 0xDFFF:
                combined = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                return chr(combined), 12
    return chr(code), 6
