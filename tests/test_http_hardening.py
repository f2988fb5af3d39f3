from starlette.testclient import WebSocketDenialResponse

from tests.base import TopicsApiBase
from slidecast.core.http_hardening import redacted_target

REQUEST_ID_PATTERN = r"^[A-Za-z0-9._-]{1,128}$"


class HttpHardeningTests(TopicsApiBase):
    def test_topic_reads_are_hardened_and_never_cached(self):
        topic = self.create_topic()
        response = self.client.get(topic["subPath"])
        self.assertEqual(response.status_code, 200)

        self.assertEqual(response.headers.get("x-content-type-options"), "nosniff")
        self.assertEqual(response.headers.get("x-frame-options"), "DENY")
        self.assertEqual(response.headers.get("referrer-policy"), "no-referrer")
        self.assertEqual(response.headers.get("cache-control"), "no-store")
        self.assertRegex(str(response.headers.get("x-request-id")), REQUEST_ID_PATTERN)

    def test_request_id_is_kept_only_when_well_formed(self):
        response = self.client.post("/topics", headers={"X-Request-ID": "deck-check-2026_10_19"})
        self.assertEqual(response.headers.get("x-request-id"), "deck-check-2026_10_19")

        response = self.client.post("/topics", headers={"X-Request-ID": "bad id with spaces"})
        self.assertNotEqual(response.headers.get("x-request-id"), "bad id with spaces")
        self.assertRegex(str(response.headers.get("x-request-id")), REQUEST_ID_PATTERN)

    def test_error_response_keeps_security_headers(self):
        response = self.client.get("/topics/" + "A" * 22)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.headers.get("x-frame-options"), "DENY")
        self.assertTrue(bool(response.headers.get("x-request-id")))

    def test_publish_log_redacts_secret(self):
        topic = self.create_topic()
        with self.assertLogs("slidecast.http", level="INFO") as logs:
            self.publish(topic, "# Hi")
        joined = "\n".join(logs.output)
        self.assertNotIn(topic["secret"], joined)
        self.assertIn(f"/topics/{topic['topicId']}?secret=redacted status=201", joined)
        self.assertIn("access=pub", joined)

    def test_reads_log_as_subscriber_access(self):
        topic = self.create_topic()
        with self.assertLogs("slidecast.http", level="INFO") as logs:
            self.client.get(topic["subPath"])
        self.assertIn("access=sub", "\n".join(logs.output))

    def test_refused_upgrade_is_hardened_and_logged_without_secret(self):
        topic = self.create_topic()
        with self.assertLogs("slidecast.http", level="INFO") as logs:
            with self.assertRaises(WebSocketDenialResponse) as ctx:
                with self.client.websocket_connect(
                    f"{topic['subPath']}?secret=wrongsecret",
                    headers={"X-Request-ID": "ws-upgrade-1"},
                ):
                    pass

        denial = ctx.exception
        self.assertEqual(denial.status_code, 403)
        self.assertEqual(denial.headers.get("x-frame-options"), "DENY")
        self.assertEqual(denial.headers.get("cache-control"), "no-store")
        self.assertEqual(denial.headers.get("x-request-id"), "ws-upgrade-1")

        joined = "\n".join(logs.output)
        self.assertNotIn("wrongsecret", joined)
        self.assertIn(f"WS /topics/{topic['topicId']}?secret=redacted status=403", joined)
        self.assertIn("request_id=ws-upgrade-1", joined)

    def test_redacted_target_replaces_only_the_secret(self):
        self.assertEqual(redacted_target("/topics/abc", ""), "/topics/abc")
        self.assertEqual(
            redacted_target("/topics/abc", "secret=s3cr3t&theme=dark"),
            "/topics/abc?secret=redacted&theme=dark",
        )
        self.assertEqual(redacted_target("/topics/abc", "theme=dark"), "/topics/abc?theme=dark")
