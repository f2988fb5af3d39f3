from __future__ import annotations

import logging
from datetime import datetime

from slidecast.core.capability import TopicPair, generate_topic
from slidecast.core.config import settings
from slidecast.core.errors import ContentTooLargeError, InvalidTopicIdError, TopicNotFoundError
from slidecast.models.common import utcnow
from slidecast.models.topic import Topic, topic_key
from slidecast.services.content_store import ContentStore
from slidecast.services.validation import MAX_CONTENT_BYTES, content_size_bytes, is_valid_topic_id

logger = logging.getLogger(__name__)


def _now_ms() -> datetime:
    # Stored timestamps carry millisecond precision; keep in-memory values identical.
    now = utcnow()
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def _ensure_topic_id(topic_id: str) -> None:
    if not is_valid_topic_id(topic_id):
        raise InvalidTopicIdError(str(topic_id))


class TopicDirectory:
    """Topic lifecycle on top of a content store.

    Records live at ``("topic", topic_id)`` and expire ``ttl_seconds`` after the
    last write. Concurrent writers are not reconciled: the last write wins.
    """

    def __init__(self, store: ContentStore, *, ttl_seconds: int | None = None):
        self.store = store
        self.ttl_seconds = int(ttl_seconds if ttl_seconds is not None else settings.topic_ttl_seconds)

    def create_topic(self) -> TopicPair:
        pair = generate_topic()
        now = _now_ms()
        topic = Topic(topic_id=pair.topic_id, markdown="", created_at=now, updated_at=now)
        self.store.set(topic_key(pair.topic_id), topic.to_record(), self.ttl_seconds)
        logger.info("topic created topic_id=%s", pair.topic_id)
        return pair

    def get_topic(self, topic_id: str) -> Topic | None:
        _ensure_topic_id(topic_id)
        record = self.store.get(topic_key(topic_id))
        if record is None:
            return None
        return Topic.from_record(topic_id, record)

    def update_content(self, topic_id: str, markdown: str) -> Topic:
        _ensure_topic_id(topic_id)
        size = content_size_bytes(markdown)
        if size > MAX_CONTENT_BYTES:
            raise ContentTooLargeError(size, MAX_CONTENT_BYTES)

        existing = self.get_topic(topic_id)
        if existing is None:
            raise TopicNotFoundError(topic_id)

        updated = Topic(
            topic_id=topic_id,
            markdown=markdown,
            created_at=existing.created_at,
            updated_at=_now_ms(),
        )
        self.store.set(topic_key(topic_id), updated.to_record(), self.ttl_seconds)
        return updated

    def topic_exists(self, topic_id: str) -> bool:
        _ensure_topic_id(topic_id)
        return self.store.has(topic_key(topic_id))
