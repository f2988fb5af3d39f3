from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    FORBIDDEN = "FORBIDDEN"
    INVALID_EMOJI = "INVALID_EMOJI"
    INVALID_MESSAGE = "INVALID_MESSAGE"
    NOT_FOUND = "NOT_FOUND"
    TOO_LARGE = "TOO_LARGE"
    INTERNAL = "INTERNAL"


class TopicError(Exception):
    code: ErrorCode = ErrorCode.INTERNAL


class TopicNotFoundError(TopicError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, topic_id: str):
        super().__init__(f"Topic not found: {topic_id}")
        self.topic_id = topic_id


class ContentTooLargeError(TopicError):
    code = ErrorCode.TOO_LARGE

    def __init__(self, size_bytes: int, limit_bytes: int):
        super().__init__(f"Content exceeds size limit ({size_bytes} > {limit_bytes} bytes)")
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes


class InvalidTopicIdError(TopicError):
    code = ErrorCode.INVALID_MESSAGE

    def __init__(self, topic_id: str):
        super().__init__("Invalid topic ID format")
        self.topic_id = topic_id


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.FORBIDDEN: "Permission denied",
    ErrorCode.INVALID_EMOJI: "Invalid emoji",
    ErrorCode.INVALID_MESSAGE: "Invalid message format",
    ErrorCode.NOT_FOUND: "Topic not found",
    ErrorCode.TOO_LARGE: "Content exceeds size limit (1MB)",
    ErrorCode.INTERNAL: "Internal server error",
}
