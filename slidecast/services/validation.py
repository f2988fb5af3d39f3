from __future__ import annotations

import re

MAX_CONTENT_BYTES = 1_048_576
MAX_EMOJI_LENGTH = 10

TOPIC_ID_RE = re.compile(r"^[A-Za-z0-9_-]{22}$")


def is_valid_topic_id(topic_id: str | None) -> bool:
    if not isinstance(topic_id, str):
        return False
    return TOPIC_ID_RE.fullmatch(topic_id) is not None


def content_size_bytes(content: str) -> int:
    return len(content.encode("utf-8"))


def is_valid_content_size(content: str) -> bool:
    return content_size_bytes(content) <= MAX_CONTENT_BYTES


def emoji_length(emoji: str) -> int:
    # Counted in UTF-16 code units so surrogate pairs and ZWJ sequences
    # are measured the way browser clients measure them.
    return len(emoji.encode("utf-16-le")) // 2


def is_valid_emoji(emoji: str | None) -> bool:
    if not isinstance(emoji, str):
        return False
    return 0 < emoji_length(emoji) <= MAX_EMOJI_LENGTH
