from threading import Lock

from slidecast.services.broadcast_hub import BroadcastHub, get_broadcast_hub
from slidecast.services.content_store import get_content_store
from slidecast.services.topic_directory import TopicDirectory

_directory: TopicDirectory | None = None
_directory_lock = Lock()


def get_topic_directory() -> TopicDirectory:
    global _directory
    if _directory is not None:
        return _directory
    with _directory_lock:
        if _directory is None:
            _directory = TopicDirectory(get_content_store())
        return _directory


def get_hub() -> BroadcastHub:
    return get_broadcast_hub()


def reset_topic_directory_for_tests() -> None:
    global _directory
    with _directory_lock:
        _directory = None
