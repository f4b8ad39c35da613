# lambdas/trail_filter/app.py
import json
import logging
import urllib.parse
from typing import Any, Callable, Dict, Iterable, Optional

import boto3

from .formatter import build_notification, format_slack_message
from .identity import resolve_actor_name
from .log_setup import configure_logging
from .models import (AppSettings, AuditRecord, Classification, ProcessingSummary,
                     StorageLocation, TrailFilterError)
from .notifier import DeliveryError, send_slack_notification
from .record_parser import ParseError, parse_trail_object
from .rules import classify
from .s3_source import FetchError, fetch_trail_object, is_meta_key

VERSION = "0.2.0"

logger = logging.getLogger(__name__)


class TrailObjectError(TrailFilterError):
    """A fetch or parse failure, tagged with the key of the object that failed."""
    def __init__(self, key: str, cause: Exception):
        super().__init__(f"{key}: {cause}")
        self.key = key
        self.cause = cause


def build_event_log_entry(record: AuditRecord, actor: str, location: StorageLocation,
                          classification: Classification) -> Dict[str, Any]:
    """The structured fields logged for every record, whatever the verdict."""
    user_identity = record.user_identity
    return {
        "user_agent": record.raw.get("userAgent"),
        "event_time": record.raw.get("eventTime"),
        "principal": record.principal_id,
        "user_name": actor,
        "event_source": record.raw.get("eventSource"),
        "event_name": record.raw.get("eventName"),
        "account_id": user_identity.get("accountId"),
        "event_id": record.raw.get("eventID"),
        "s3_uri": location.uri,
        "verdict": classification.verdict.value,
        "rule": classification.rule,
    }


def location_from_s3_record(s3_event_record: dict) -> StorageLocation:
    """
    Extracts bucket/key/region from one S3 event notification record.
    Keys arrive URL-encoded ("+" for spaces).
    """
    s3 = s3_event_record["s3"]
    return StorageLocation(
        bucket=s3["bucket"]["name"],
        key=urllib.parse.unquote_plus(s3["object"]["key"]),
        region=s3_event_record.get("awsRegion", ""),
    )


class TrailProcessor:
    """
    Fetches, parses and classifies CloudTrail log objects, alerting Slack about
    the events that survive the filter.
    """
    def __init__(self, settings: AppSettings,
                 s3_client_factory: Optional[Callable[[str], Any]] = None,
                 deliver: Optional[Callable[..., None]] = None):
        self.settings = settings
        self._s3_client_factory = s3_client_factory or _default_s3_client
        self._deliver = deliver or send_slack_notification

    def process_location(self, location: StorageLocation) -> ProcessingSummary:
        """
        Processes one log object end to end.

        Raises:
            TrailObjectError: If the object cannot be fetched or parsed. Nothing
                in the object is processed in that case.
        """
        summary = ProcessingSummary(keys=[location.key])
        if is_meta_key(location.key):
            logger.debug(f"Skipping non-activity object {location.uri}")
            summary.skipped_objects = 1
            return summary

        try:
            s3_client = self._s3_client_factory(location.region)
            content_type, body = fetch_trail_object(s3_client, location.bucket, location.key)
            records = parse_trail_object(body, content_type)
        except (FetchError, ParseError) as e:
            raise TrailObjectError(location.key, e) from e

        self.filter_records(records, location, summary)
        return summary

    def filter_records(self, records: Iterable[AuditRecord], location: StorageLocation,
                       summary: Optional[ProcessingSummary] = None) -> ProcessingSummary:
        """Classifies, logs and (when warranted) alerts on each record in order."""
        if summary is None:
            summary = ProcessingSummary()

        for record in records:
            summary.records += 1
            classification = classify(record)
            actor = resolve_actor_name(record.raw.get("userIdentity"))

            logger.info("Event", extra={"fields": build_event_log_entry(record, actor, location, classification)})

            if not classification:
                summary.suppressed += 1
                continue

            summary.notified += 1
            if not self.settings.delivery_enabled:
                continue
            if not self.notify(record, location):
                summary.delivery_failures += 1

        return summary

    def notify(self, record: AuditRecord, location: StorageLocation) -> bool:
        """Sends the alert for one record. Returns False if Slack did not take it."""
        payload = build_notification(record, self.settings, location)
        message = format_slack_message(payload, self.settings.channel)
        try:
            self._deliver(self.settings.webhook_url, message, timeout=self.settings.slack_timeout_seconds)
        except DeliveryError as e:
            logger.debug(json.dumps(message))
            logger.debug(f"Slack delivery failed for event {record.event_id}: {e}")
            return False
        return True

    def process_event(self, event: dict) -> ProcessingSummary:
        """Processes every S3 record of one notification, in order. The first failure aborts."""
        total = ProcessingSummary()
        for s3_event_record in event.get("Records", []):
            location = location_from_s3_record(s3_event_record)
            total.add(self.process_location(location))
        return total


_S3_CLIENTS: Dict[str, Any] = {}


def _default_s3_client(region: str):
    # One client per region, reused across warm invocations.
    if region not in _S3_CLIENTS:
        _S3_CLIENTS[region] = boto3.client("s3", region_name=region or None)
    return _S3_CLIENTS[region]


# Load configuration in the global scope for reuse across warm invocations.
SETTINGS = AppSettings.from_env()
configure_logging(SETTINGS.log_level)
logger.info(f"Starting trail-filter {VERSION}")


def _is_s3_event(event: Any) -> bool:
    records = event.get("Records") if isinstance(event, dict) else None
    return isinstance(records, list) and all(isinstance(r, dict) and "s3" in r for r in records)


def handler(event: Dict[str, Any], context: object, processor: TrailProcessor = None) -> Dict[str, Any]:
    """
    Main Lambda handler, triggered by S3 object-created notifications for the
    CloudTrail bucket. A failing object fails the whole invocation so that the
    asynchronous invoke is retried.
    """
    logger.info(f"S3 event: {json.dumps(event, default=str)}")

    if not _is_s3_event(event):
        logger.warning("Not a valid S3 event. No action taken.")
        return {"statusCode": 200, "body": json.dumps("No S3 event detected.")}

    processor = processor or TrailProcessor(SETTINGS)
    summary = processor.process_event(event)

    logger.info(f"✅ Scanned {summary.records} records, {summary.notified} notify-worthy", extra={"fields": summary.as_dict()})
    return {"statusCode": 200, "body": json.dumps(summary.as_dict())}
