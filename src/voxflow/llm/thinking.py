"""Thinking-token extraction.

Reasoning models interleave their chain of thought with the answer, either as
``<think>...</think>`` blocks in the content or as a separate
``reasoning_content`` field. The answer delivered to the user must never
contain either.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .endpoints import emits_orphan_close_tag

THINKING_TAG_PATTERN = re.compile(r"<think(?:ing)?>([\s\S]*?)</think(?:ing)?>")

# Content before a closing tag with no opening tag (e.g. Nemotron)
ORPHAN_THINKING_PATTERN = re.compile(r"^([\s\S]*?)</think(?:ing)?>")

STRAY_TAGS = ("</thinking>", "</think>", "<thinking>", "<think>")

OPEN_TAGS = ("<thinking>", "<think>")
CLOSE_TAGS = ("</thinking>", "</think>")


def strip_thinking_tags(text: str) -> tuple[str, str]:
    """Split raw content into (thinking, answer).

    Args:
        text: Raw assistant content.

    Returns:
        Tuple of extracted thinking text and the cleaned, stripped answer.
    """
    thinking_parts: list[str] = []

    thinking_parts.extend(THINKING_TAG_PATTERN.findall(text))
    working = THINKING_TAG_PATTERN.sub("", text)

    orphan = ORPHAN_THINKING_PATTERN.match(working)
    if orphan:
        thinking_parts.append(orphan.group(1))
        working = working[orphan.end():]

    for tag in STRAY_TAGS:
        working = working.replace(tag, "")

    return "".join(thinking_parts), working.strip()


def merge_thinking(*parts: str | None) -> str | None:
    """Join non-empty thinking fragments, or None when there are none."""
    merged = "\n".join(p for p in parts if p)
    return merged or None


@dataclass
class StreamingThinkingParser:
    """Incremental ``<think>`` splitter for streamed content.

    Chunks may cut a tag in half, so unmatched text that could still be the
    start of a tag is held back in ``_buffer`` until the next chunk arrives.

    With ``implicit_open`` the stream is treated as already inside a thinking
    block, for models that only ever emit the closing tag. If no closing tag
    arrives, ``flush`` releases the withheld text as answer.
    """

    implicit_open: bool = False
    in_thinking: bool = False
    thinking: list[str] = field(default_factory=list)
    content: list[str] = field(default_factory=list)
    _buffer: str = ""

    def __post_init__(self):
        if self.implicit_open:
            self.in_thinking = True

    @classmethod
    def for_model(cls, model: str | None) -> "StreamingThinkingParser":
        return cls(implicit_open=emits_orphan_close_tag(model))

    def feed(self, chunk: str) -> str:
        """Consume a chunk and return the answer text it released."""
        self._buffer += chunk
        released: list[str] = []

        while self._buffer:
            tags = CLOSE_TAGS if self.in_thinking else OPEN_TAGS
            index, tag = _find_first(self._buffer, tags)
            if index >= 0:
                before = self._buffer[:index]
                self._emit(before, released)
                self._buffer = self._buffer[index + len(tag):]
                if self.in_thinking:
                    self.implicit_open = False
                self.in_thinking = not self.in_thinking
                continue

            keep = _partial_tag_suffix(self._buffer, tags)
            emit_upto = len(self._buffer) - keep
            self._emit(self._buffer[:emit_upto], released)
            self._buffer = self._buffer[emit_upto:]
            break

        return "".join(released)

    def flush(self) -> str:
        """Release whatever answer text is still held back at end of stream."""
        released: list[str] = []
        if self._buffer:
            self._emit(self._buffer, released)
            self._buffer = ""

        if self.implicit_open and self.in_thinking:
            # The closing tag never came, so none of it was thinking
            late = "".join(self.thinking)
            self.thinking = []
            self.in_thinking = False
            self.implicit_open = False
            self._emit(late, released)

        return "".join(released)

    def finish(self) -> tuple[str, str]:
        """Flush the buffer and return the final (thinking, answer)."""
        self.flush()
        thinking = "".join(self.thinking)
        for tag in OPEN_TAGS:
            thinking = thinking.replace(tag, "")
        content = "".join(self.content)

        # A closing tag with no opening tag means everything before it was thinking
        orphan_thinking, cleaned = strip_thinking_tags(content)
        return thinking + orphan_thinking, cleaned

    def _emit(self, text: str, released: list[str]) -> None:
        if not text:
            return
        if self.in_thinking:
            self.thinking.append(text)
        else:
            self.content.append(text)
            released.append(text)


def _find_first(text: str, tags: tuple[str, ...]) -> tuple[int, str]:
    best_index, best_tag = -1, ""
    for tag in tags:
        index = text.find(tag)
        if index >= 0 and (best_index < 0 or index < best_index):
            best_index, best_tag = index, tag
    return best_index, best_tag


def _partial_tag_suffix(text: str, tags: tuple[str, ...]) -> int:
    """Length of the longest suffix of ``text`` that is a proper prefix of a tag."""
    longest = 0
    for tag in tags:
        for size in range(1, len(tag)):
            if text.endswith(tag[:size]):
                longest = max(longest, size)
    return longest
