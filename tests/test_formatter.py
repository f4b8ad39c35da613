# tests/test_formatter.py
import pytest

from lambdas.trail_filter.formatter import build_notification, console_event_url, format_slack_message
from lambdas.trail_filter.models import AppSettings, AuditRecord, StorageLocation

LOCATION = StorageLocation(bucket="trail-bucket", key="AWSLogs/111122223333/CloudTrail/us-east-1/2024/01/01/f.json.gz",
                           region="us-east-1")


@pytest.fixture
def record() -> AuditRecord:
    return AuditRecord({
        "eventName": "DeleteBucket",
        "eventSource": "s3.amazonaws.com",
        "eventTime": "2024-01-01T12:00:00Z",
        "eventID": "6f1c5b4e-0000-4000-8000-123456789abc",
        "awsRegion": "eu-west-1",
        "userIdentity": {"principalId": "AROAEXAMPLE:session-bob", "accountId": "111122223333"},
    })


def test_console_event_url():
    assert console_event_url("eu-west-1", "abc-123") == (
        "https://console.aws.amazon.com/cloudtrail/home?region=eu-west-1#/events?EventId=abc-123"
    )


def test_build_notification(record: AuditRecord):
    payload = build_notification(record, AppSettings(), LOCATION)
    assert payload.event_name == "DeleteBucket"
    assert payload.event_source == "s3.amazonaws.com"
    assert payload.actor == "session-bob"
    assert payload.account_label == "111122223333"
    assert payload.region == "eu-west-1"
    assert payload.console_url.endswith("region=eu-west-1#/events?EventId=6f1c5b4e-0000-4000-8000-123456789abc")
    assert payload.source_uri == f"s3://trail-bucket/{LOCATION.key}"


@pytest.mark.parametrize("settings, expected", [
    (AppSettings(account_labels={"111122223333": "prod"}, default_account_label="aws"), "prod"),
    (AppSettings(account_labels={"999999999999": "dev"}, default_account_label="aws"), "aws"),
    (AppSettings(account_labels={"111122223333": ""}), "111122223333"),
])
def test_account_label_resolution(record: AuditRecord, settings: AppSettings, expected: str):
    assert build_notification(record, settings, LOCATION).account_label == expected


def test_slack_message_blocks(record: AuditRecord):
    payload = build_notification(record, AppSettings(default_account_label="prod"), LOCATION)
    message = format_slack_message(payload, "#aws-alerts")

    assert message["channel"] == "#aws-alerts"
    assert message["text"] == "DeleteBucket by session-bob"

    section, context = message["blocks"]
    assert section["type"] == "section"
    assert section["text"]["text"] == "*DeleteBucket* - s3.amazonaws.com"

    elements = [e["text"] for e in context["elements"]]
    assert elements[0] == "prod"
    assert elements[1] == "session-bob"
    assert elements[2] == f"<{payload.console_url}|2024-01-01T12:00:00Z>"
    assert elements[3] == f"`s3://trail-bucket/{LOCATION.key}`"


def test_slack_message_without_channel_and_with_escaping():
    record = AuditRecord({"eventName": "Put<Thing>", "userIdentity": {"userName": "a&b"}})
    message = format_slack_message(build_notification(record, AppSettings(), LOCATION))
    assert "channel" not in message
    assert message["blocks"][0]["text"]["text"].startswith("*Put&lt;Thing&gt;*")
    assert message["blocks"][1]["elements"][1]["text"] == "a&amp;b"
    assert message["text"] == "Put&lt;Thing&gt; by a&amp;b"
