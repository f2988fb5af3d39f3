"""Capability tokens for topics.

A topic id is 16 random bytes; its secret is HMAC-SHA256(server key, id bytes).
Both travel base64url-encoded without padding. The secret is never stored:
it is re-derived at verification time, so rotating ``HMAC_KEY`` revokes every
secret issued under the previous key.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import re
import secrets
import threading
from dataclasses import dataclass
from enum import Enum

from slidecast.core.config import settings

_LOG = logging.getLogger("slidecast.capability")

TOPIC_ID_BYTES = 16
GENERATED_KEY_BYTES = 32

_B64URL_RE = re.compile(r"^[A-Za-z0-9_-]*$")

_cached_key: bytes | None = None
_key_lock = threading.Lock()


class AccessLevel(str, Enum):
    READABLE = "readable"
    WRITABLE = "writable"
    INVALID = "invalid"


@dataclass(frozen=True)
class TopicPair:
    topic_id: str
    secret: str


def b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    text = str(value or "")
    if not _B64URL_RE.fullmatch(text) or len(text) % 4 == 1:
        raise ValueError("Invalid base64url string")
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
    except binascii.Error as exc:
        raise ValueError("Invalid base64url string") from exc


def _load_key() -> bytes:
    raw = str(settings.HMAC_KEY or "").strip()
    if raw:
        try:
            key = b64url_decode(raw)
            if key:
                return key
        except ValueError:
            pass
        _LOG.warning("Invalid HMAC_KEY in environment, generating an ephemeral key")
    else:
        _LOG.warning(
            "HMAC_KEY is not set, using an ephemeral key; "
            "topic secrets will stop verifying after a restart"
        )
    return secrets.token_bytes(GENERATED_KEY_BYTES)


def signing_key() -> bytes:
    global _cached_key
    if _cached_key is not None:
        return _cached_key
    with _key_lock:
        if _cached_key is None:
            _cached_key = _load_key()
        return _cached_key


def reset_signing_key_for_tests() -> None:
    global _cached_key
    with _key_lock:
        _cached_key = None


def _sign(topic_id_raw: bytes) -> bytes:
    return hmac.new(signing_key(), topic_id_raw, hashlib.sha256).digest()


def generate_topic() -> TopicPair:
    topic_id_raw = secrets.token_bytes(TOPIC_ID_BYTES)
    return TopicPair(
        topic_id=b64url_encode(topic_id_raw),
        secret=b64url_encode(_sign(topic_id_raw)),
    )


def verify_access(topic_id: str, secret: str | None) -> AccessLevel:
    """Classify an id/secret pair.

    No secret means read-only access. A supplied secret either verifies
    (writable) or does not (invalid); decode failures are indistinguishable
    from a wrong secret.
    """
    if not secret:
        return AccessLevel.READABLE
    try:
        topic_id_raw = b64url_decode(topic_id)
        secret_raw = b64url_decode(secret)
        expected = _sign(topic_id_raw)
    except Exception:
        _LOG.debug("access verification failed to decode", exc_info=True)
        return AccessLevel.INVALID
    if hmac.compare_digest(expected, secret_raw):
        return AccessLevel.WRITABLE
    return AccessLevel.INVALID
