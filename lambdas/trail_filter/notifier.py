# lambdas/trail_filter/notifier.py
import requests

from .models import TrailFilterError

SLACK_OK_BODY = "ok"


class DeliveryError(TrailFilterError):
    """Slack did not accept the message."""
    pass


def send_slack_notification(webhook_url: str, message: dict, timeout: float = 10, session=None) -> None:
    """
    Posts one message to a Slack incoming webhook.

    Slack answers a successful post with the literal body "ok"; anything else
    is treated as a failure.

    Raises:
        DeliveryError: On network errors or any non-"ok" response.
    """
    http = session or requests
    try:
        response = http.post(webhook_url, json=message, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise DeliveryError(f"Could not reach Slack: {e}") from e

    if response.text != SLACK_OK_BODY:
        raise DeliveryError(f"Non-ok response returned from Slack ({response.status_code}): {response.text}")
