import os
import unittest
from unittest.mock import patch

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("HMAC_KEY", "c2xpZGVjYXN0LXRlc3Qta2V5")

from slidecast.core import capability
from slidecast.core.capability import (
    AccessLevel,
    b64url_decode,
    b64url_encode,
    generate_topic,
    reset_signing_key_for_tests,
    verify_access,
)
from slidecast.services.validation import is_valid_topic_id


class CapabilityTests(unittest.TestCase):
    def setUp(self):
        reset_signing_key_for_tests()

    def tearDown(self):
        reset_signing_key_for_tests()

    def test_generated_pair_shape(self):
        pair = generate_topic()
        self.assertEqual(len(pair.topic_id), 22)
        self.assertTrue(is_valid_topic_id(pair.topic_id))
        self.assertEqual(len(b64url_decode(pair.topic_id)), 16)
        self.assertEqual(len(b64url_decode(pair.secret)), 32)
        self.assertNotIn("=", pair.secret)

    def test_generated_ids_do_not_repeat(self):
        ids = {generate_topic().topic_id for _ in range(200)}
        self.assertEqual(len(ids), 200)

    def test_generated_pair_is_writable(self):
        for _ in range(20):
            pair = generate_topic()
            self.assertEqual(verify_access(pair.topic_id, pair.secret), AccessLevel.WRITABLE)

    def test_empty_secret_is_readable(self):
        pair = generate_topic()
        self.assertEqual(verify_access(pair.topic_id, ""), AccessLevel.READABLE)
        self.assertEqual(verify_access(pair.topic_id, None), AccessLevel.READABLE)

    def test_other_secret_is_invalid(self):
        first = generate_topic()
        second = generate_topic()
        self.assertEqual(verify_access(first.topic_id, second.secret), AccessLevel.INVALID)
        self.assertEqual(verify_access(first.topic_id, "invalidsecret"), AccessLevel.INVALID)

    def test_undecodable_values_are_invalid_not_errors(self):
        pair = generate_topic()
        self.assertEqual(verify_access(pair.topic_id, "not base64 !!"), AccessLevel.INVALID)
        self.assertEqual(verify_access("%%%", pair.secret), AccessLevel.INVALID)
        self.assertEqual(verify_access(pair.topic_id, "a"), AccessLevel.INVALID)

    def test_tampered_secret_is_invalid(self):
        pair = generate_topic()
        raw = bytearray(b64url_decode(pair.secret))
        raw[0] ^= 0x01
        self.assertEqual(verify_access(pair.topic_id, b64url_encode(bytes(raw))), AccessLevel.INVALID)

    def test_key_rotation_invalidates_secrets(self):
        pair = generate_topic()
        with patch.object(capability.settings, "HMAC_KEY", "b3RoZXIta2V5LW1hdGVyaWFs"):
            reset_signing_key_for_tests()
            self.assertEqual(verify_access(pair.topic_id, pair.secret), AccessLevel.INVALID)

    def test_secret_is_deterministic_for_a_key(self):
        pair = generate_topic()
        reset_signing_key_for_tests()
        self.assertEqual(verify_access(pair.topic_id, pair.secret), AccessLevel.WRITABLE)

    def test_missing_key_generates_ephemeral_key_with_warning(self):
        with patch.object(capability.settings, "HMAC_KEY", ""):
            reset_signing_key_for_tests()
            with self.assertLogs("slidecast.capability", level="WARNING") as logs:
                key = capability.signing_key()
            self.assertEqual(len(key), capability.GENERATED_KEY_BYTES)
            self.assertIs(capability.signing_key(), key)
        self.assertTrue(any("HMAC_KEY" in line for line in logs.output))

    def test_malformed_key_falls_back_with_warning(self):
        with patch.object(capability.settings, "HMAC_KEY", "not a key!"):
            reset_signing_key_for_tests()
            with self.assertLogs("slidecast.capability", level="WARNING") as logs:
                key = capability.signing_key()
        self.assertEqual(len(key), capability.GENERATED_KEY_BYTES)
        self.assertTrue(any("Invalid HMAC_KEY" in line for line in logs.output))

    def test_configured_key_is_used(self):
        self.assertEqual(capability.signing_key(), b"slidecast-test-key")
