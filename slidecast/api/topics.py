from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket

from slidecast.core.capability import AccessLevel, verify_access
from slidecast.core.config import settings
from slidecast.core.deps import get_hub, get_topic_directory
from slidecast.core.errors import ContentTooLargeError, TopicNotFoundError
from slidecast.models.common import iso_utc
from slidecast.schemas.topics import (
    OutboundFrame,
    TopicContentUpdate,
    TopicContentUpdated,
    TopicCreated,
    TopicRead,
)
from slidecast.services.broadcast_hub import BroadcastHub
from slidecast.services.connection import serve_topic_socket
from slidecast.services.topic_directory import TopicDirectory
from slidecast.services.validation import is_valid_topic_id

router = APIRouter()
_LOG = logging.getLogger("slidecast.api.topics")


def _topic_path(topic_id: str) -> str:
    return f"{settings.API_PREFIX.rstrip('/')}/topics/{topic_id}"


def _topic_id_or_400(topic_id: str) -> str:
    if not is_valid_topic_id(topic_id):
        raise HTTPException(status_code=400, detail="Invalid topic ID format")
    return topic_id


@router.post("", response_model=TopicCreated)
def create_topic(directory: TopicDirectory = Depends(get_topic_directory)):
    try:
        pair = directory.create_topic()
    except Exception:
        _LOG.exception("topic creation failed")
        raise HTTPException(status_code=500, detail="Failed to create topic")
    sub_path = _topic_path(pair.topic_id)
    return TopicCreated(
        topic_id=pair.topic_id,
        secret=pair.secret,
        sub_path=sub_path,
        pub_path=f"{sub_path}?secret={pair.secret}",
    )


@router.get("/{topic_id}", response_model=TopicRead)
def get_topic(topic_id: str, directory: TopicDirectory = Depends(get_topic_directory)):
    _topic_id_or_400(topic_id)
    try:
        topic = directory.get_topic(topic_id)
    except Exception:
        _LOG.exception("topic read failed topic_id=%s", topic_id)
        raise HTTPException(status_code=500, detail="Failed to retrieve topic")
    if topic is None:
        raise HTTPException(status_code=404, detail="Topic not found")
    return TopicRead(
        markdown=topic.markdown,
        created_at=iso_utc(topic.created_at),
        updated_at=iso_utc(topic.updated_at),
    )


@router.post("/{topic_id}", response_model=TopicContentUpdated, status_code=201)
def update_topic_content(
    topic_id: str,
    payload: TopicContentUpdate,
    secret: str = Query(""),
    directory: TopicDirectory = Depends(get_topic_directory),
    hub: BroadcastHub = Depends(get_hub),
):
    _topic_id_or_400(topic_id)
    if verify_access(topic_id, secret) != AccessLevel.WRITABLE:
        raise HTTPException(status_code=403, detail="Forbidden - invalid secret")
    try:
        topic = directory.update_content(topic_id, payload.markdown)
    except TopicNotFoundError:
        raise HTTPException(status_code=404, detail="Topic not found")
    except ContentTooLargeError:
        raise HTTPException(status_code=413, detail="Content exceeds size limit (1MB)")
    except Exception:
        _LOG.exception("content update failed topic_id=%s", topic_id)
        raise HTTPException(status_code=500, detail="Failed to update content")

    hub.broadcast(topic_id, OutboundFrame(markdown=payload.markdown))
    return TopicContentUpdated(updated_at=iso_utc(topic.updated_at))


@router.websocket("/{topic_id}")
async def topic_socket(
    websocket: WebSocket,
    topic_id: str,
    secret: str = Query(""),
    directory: TopicDirectory = Depends(get_topic_directory),
    hub: BroadcastHub = Depends(get_hub),
):
    await serve_topic_socket(
        websocket,
        topic_id=topic_id,
        secret=secret,
        directory=directory,
        hub=hub,
    )
