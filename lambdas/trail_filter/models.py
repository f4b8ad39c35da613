# lambdas/trail_filter/models.py
"""
Plain-dataclass models and a simple settings class for the CloudTrail filter.
"""
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


ACCOUNT_LABEL_PREFIX = "SLACK_NAME_"


class TrailFilterError(Exception):
    """Base class for every error raised by the filter."""
    pass


class AppSettings:
    """
    Holds the recognized configuration options. Use `from_env()` inside the
    Lambda; tests build it directly.
    """
    def __init__(
        self,
        webhook_url: Optional[str] = None,
        channel: Optional[str] = None,
        default_account_label: Optional[str] = None,
        account_labels: Optional[Dict[str, str]] = None,
        log_level: str = "INFO",
        slack_timeout_seconds: float = 10.0,
    ):
        self.webhook_url = webhook_url or None
        self.channel = channel or None
        self.default_account_label = default_account_label or None
        # Empty overrides behave as if they were never set.
        self.account_labels: Dict[str, str] = {k: v for k, v in (account_labels or {}).items() if v}
        self.log_level = log_level
        self.slack_timeout_seconds = slack_timeout_seconds

    @classmethod
    def from_env(cls, environ=None) -> "AppSettings":
        """
        Loads configuration settings directly from environment variables.
        Every option is optional; a missing SLACK_WEBHOOK only disables delivery.
        """
        env = os.environ if environ is None else environ
        account_labels = {
            name[len(ACCOUNT_LABEL_PREFIX):]: value
            for name, value in env.items()
            if name.startswith(ACCOUNT_LABEL_PREFIX)
        }
        return cls(
            webhook_url=env.get("SLACK_WEBHOOK"),
            channel=env.get("SLACK_CHANNEL"),
            default_account_label=env.get("SLACK_NAME"),
            account_labels=account_labels,
            log_level=env.get("LOG_LEVEL", "INFO"),
            slack_timeout_seconds=float(env.get("SLACK_TIMEOUT_SECONDS", "10")),
        )

    @property
    def delivery_enabled(self) -> bool:
        return self.webhook_url is not None

    def account_label(self, account_id: str) -> str:
        """Account override first, then the global label, then the raw account id."""
        return self.account_labels.get(account_id) or self.default_account_label or account_id


class Verdict(str, Enum):
    SUPPRESS = "Suppress"
    NOTIFY = "Notify"


@dataclass(frozen=True)
class Classification:
    """
    Outcome of running one record through the rule table.
    `rule` names the stage or rule that governed the decision.
    """
    verdict: Verdict
    rule: str

    def __bool__(self) -> bool:
        """Allows `if classification:` to mean "notify"."""
        return self.verdict is Verdict.NOTIFY


@dataclass(frozen=True)
class StorageLocation:
    """One S3 object referenced by an S3 event notification."""
    bucket: str
    key: str
    region: str = ""

    @property
    def uri(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


class AuditRecord:
    """
    Read-only view over one raw CloudTrail record.

    Every accessor returns a defined default when the field is missing or has
    the wrong type, so a single malformed record can never abort a batch.
    """
    def __init__(self, raw: Any):
        self.raw: Dict[str, Any] = raw if isinstance(raw, dict) else {}

    def _str(self, name: str) -> str:
        value = self.raw.get(name)
        return value if isinstance(value, str) else ""

    @property
    def event_name(self) -> str:
        return self._str("eventName")

    @property
    def event_source(self) -> str:
        return self._str("eventSource")

    @property
    def event_time(self) -> str:
        return self._str("eventTime")

    @property
    def event_id(self) -> str:
        return self._str("eventID")

    @property
    def region(self) -> str:
        return self._str("awsRegion")

    @property
    def user_agent(self) -> Optional[str]:
        """None when absent or null; non-string values degrade to ""."""
        value = self.raw.get("userAgent")
        if value is None:
            return None
        return value if isinstance(value, str) else ""

    @property
    def user_identity(self) -> Dict[str, Any]:
        value = self.raw.get("userIdentity")
        return value if isinstance(value, dict) else {}

    @property
    def principal_id(self) -> Any:
        return self.user_identity.get("principalId")

    @property
    def invoked_by(self) -> str:
        value = self.user_identity.get("invokedBy")
        return value if isinstance(value, str) else ""

    @property
    def account_id(self) -> str:
        value = self.user_identity.get("accountId")
        return value if isinstance(value, str) else ""

    def request_parameter(self, name: str) -> Any:
        params = self.raw.get("requestParameters")
        if not isinstance(params, dict):
            return None
        return params.get(name)

    def __repr__(self) -> str:
        return f"AuditRecord(eventName={self.event_name!r}, eventID={self.event_id!r})"


@dataclass
class NotificationPayload:
    """
    Everything a Slack alert shows for one notify-worthy event.
    This is a pure data container without extra methods.
    """
    event_name: str
    event_source: str
    actor: str
    account_label: str
    region: str
    event_id: str
    event_time: str
    console_url: str
    source_uri: str


@dataclass
class ProcessingSummary:
    """Per-object (and, summed, per-invocation) processing counters."""
    records: int = 0
    notified: int = 0
    suppressed: int = 0
    delivery_failures: int = 0
    skipped_objects: int = 0
    keys: list = field(default_factory=list)

    def add(self, other: "ProcessingSummary") -> None:
        self.records += other.records
        self.notified += other.notified
        self.suppressed += other.suppressed
        self.delivery_failures += other.delivery_failures
        self.skipped_objects += other.skipped_objects
        self.keys.extend(other.keys)

    def as_dict(self) -> dict:
        return {
            "records": self.records,
            "notified": self.notified,
            "suppressed": self.suppressed,
            "delivery_failures": self.delivery_failures,
            "skipped_objects": self.skipped_objects,
            "keys": list(self.keys),
        }
