# lambdas/trail_filter/formatter.py
from urllib.parse import quote

from .identity import resolve_actor_name
from .models import AppSettings, AuditRecord, NotificationPayload, StorageLocation

CONSOLE_EVENT_URL = "https://console.aws.amazon.com/cloudtrail/home?region={region}#/events?EventId={event_id}"


def console_event_url(region: str, event_id: str) -> str:
    """Deep link to the event in the CloudTrail console's event history."""
    return CONSOLE_EVENT_URL.format(region=quote(region, safe="-"), event_id=quote(event_id, safe="-"))


def _escape_mrkdwn(text: str) -> str:
    # Slack only requires these three to be escaped in mrkdwn.
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def build_notification(record: AuditRecord, settings: AppSettings, location: StorageLocation) -> NotificationPayload:
    """Collects what the alert shows. Only call this for notify verdicts."""
    account_id = record.account_id
    return NotificationPayload(
        event_name=record.event_name,
        event_source=record.event_source,
        actor=resolve_actor_name(record.raw.get("userIdentity")),
        account_label=settings.account_label(account_id),
        region=record.region,
        event_id=record.event_id,
        event_time=record.event_time,
        console_url=console_event_url(record.region, record.event_id),
        source_uri=location.uri,
    )


# Slack Formatting
def format_slack_message(payload: NotificationPayload, channel: str = None) -> dict:
    """Builds a Slack message using Block Kit."""
    event_name = _escape_mrkdwn(payload.event_name)
    actor = _escape_mrkdwn(payload.actor)

    message = {
        "text": f"{event_name} by {actor}",
        "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": f"*{event_name}* - {_escape_mrkdwn(payload.event_source)}"}},
            {"type": "context", "elements": [
                {"type": "mrkdwn", "text": _escape_mrkdwn(payload.account_label)},
                {"type": "mrkdwn", "text": actor},
                {"type": "mrkdwn", "text": f"<{payload.console_url}|{_escape_mrkdwn(payload.event_time)}>"},
                {"type": "mrkdwn", "text": f"`{payload.source_uri}`"},
            ]},
        ],
    }
    if channel:
        message["channel"] = channel
    return message
