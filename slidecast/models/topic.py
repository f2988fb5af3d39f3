from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from slidecast.models.common import iso_utc, parse_iso_utc


@dataclass(frozen=True)
class Topic:
    topic_id: str
    markdown: str
    created_at: datetime
    updated_at: datetime

    def to_record(self) -> dict[str, Any]:
        return {
            "markdown": self.markdown,
            "createdAt": iso_utc(self.created_at),
            "updatedAt": iso_utc(self.updated_at),
        }

    @classmethod
    def from_record(cls, topic_id: str, record: dict[str, Any]) -> Topic:
        return cls(
            topic_id=topic_id,
            markdown=str(record.get("markdown") or ""),
            created_at=parse_iso_utc(record["createdAt"]),
            updated_at=parse_iso_utc(record["updatedAt"]),
        )


def topic_key(topic_id: str) -> tuple[str, str]:
    return ("topic", topic_id)
