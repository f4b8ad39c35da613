# tests/test_notifier.py
import unittest
from unittest.mock import MagicMock, patch

import requests

from lambdas.trail_filter.notifier import DeliveryError, send_slack_notification

WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"
MESSAGE = {"text": "DeleteBucket by alice", "blocks": []}


class TestSendSlackNotification(unittest.TestCase):

    @patch("lambdas.trail_filter.notifier.requests.post")
    def test_ok_response_is_success(self, mock_post):
        mock_post.return_value = MagicMock(status_code=200, text="ok")

        send_slack_notification(WEBHOOK, MESSAGE)

        mock_post.assert_called_once_with(WEBHOOK, json=MESSAGE, timeout=10)

    @patch("lambdas.trail_filter.notifier.requests.post")
    def test_non_ok_body_is_failure(self, mock_post):
        mock_post.return_value = MagicMock(status_code=400, text="invalid_payload")

        with self.assertRaises(DeliveryError) as ctx:
            send_slack_notification(WEBHOOK, MESSAGE)
        self.assertIn("invalid_payload", str(ctx.exception))

    def test_network_error_is_failure(self):
        session = MagicMock()
        session.post.side_effect = requests.exceptions.ConnectionError("connection refused")

        with self.assertRaises(DeliveryError):
            send_slack_notification(WEBHOOK, MESSAGE, timeout=3, session=session)
        session.post.assert_called_once_with(WEBHOOK, json=MESSAGE, timeout=3)

    def test_timeout_is_failure(self):
        session = MagicMock()
        session.post.side_effect = requests.exceptions.Timeout("read timed out")

        with self.assertRaises(DeliveryError):
            send_slack_notification(WEBHOOK, MESSAGE, session=session)


if __name__ == '__main__':
    unittest.main()
