# lambdas/trail_filter/rules.py
"""
The decision table that separates actionable CloudTrail events from noise.

Evaluation order is the contract:

  1. Actor exclusion: calls AWS makes to itself are always suppressed.
  2. Event-name rules, top to bottom. The first rule whose predicate matches
     governs. A conditional rule whose sub-predicate fails sends the record
     straight to step 3; later rules are not consulted.
  3. User-agent allow-list: a present user agent that matches nothing on the
     list is automation nobody needs to hear about.
  4. Everything else notifies.
"""
import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Union

from .models import AuditRecord, Classification, Verdict

Predicate = Callable[[AuditRecord], bool]

INTERNAL_INVOKER = "AWS Internal"
ACTOR_EXCLUSION_RULE = "actor:aws-internal"
USER_AGENT_RULE = "user-agent:not-allow-listed"
NOTIFY_RULE = "notify"

ELB_LOG_KEY_PREFIX = "elb/AWSLogs"
INTERNAL_SDK_USER_AGENT = "Coral/Netty4"
TRUSTED_SERVICE_INVOKERS = frozenset({
    "ecs-tasks.amazonaws.com",
    "ec2.amazonaws.com",
    "monitoring.rds.amazonaws.com",
    "lambda.amazonaws.com",
})


@dataclass(frozen=True)
class Suppress:
    """Suppress whenever the rule's predicate matches."""
    pass


@dataclass(frozen=True)
class ConditionalSuppress:
    """Suppress only if `when` also holds; otherwise skip to the user-agent check."""
    when: Predicate


Action = Union[Suppress, ConditionalSuppress]


@dataclass(frozen=True)
class Rule:
    name: str
    matches: Predicate
    action: Action


# Predicate builders

def _title(event_name: str) -> str:
    # Some feeds send "getObject" where the API reference says "GetObject".
    # Only the first letter is normalized.
    return event_name[:1].upper() + event_name[1:]


def title_prefix(prefix: str) -> Predicate:
    return lambda record: _title(record.event_name).startswith(prefix)


def prefix(value: str) -> Predicate:
    return lambda record: record.event_name.startswith(value)


def suffix(value: str) -> Predicate:
    return lambda record: record.event_name.endswith(value)


def exact(value: str) -> Predicate:
    return lambda record: record.event_name == value


# Sub-predicates for conditional rules

def _from_logs_service(record: AuditRecord) -> bool:
    return record.event_source == "logs.amazonaws.com"


def _is_elb_access_log_delivery(record: AuditRecord) -> bool:
    # Load balancer access logs are written from AWS-owned accounts.
    # https://docs.aws.amazon.com/elasticloadbalancing/latest/classic/enable-access-logs.html
    key = record.request_parameter("key")
    return isinstance(key, str) and key.startswith(ELB_LOG_KEY_PREFIX)


def _is_service_role_assumption(record: AuditRecord) -> bool:
    return (record.user_agent == INTERNAL_SDK_USER_AGENT
            and record.invoked_by in TRUSTED_SERVICE_INVOKERS)


def _rule(kind: str, value: str, predicate: Predicate, action: Action = Suppress()) -> Rule:
    return Rule(name=f"{kind}:{value}", matches=predicate, action=action)


EVENT_NAME_RULES: Tuple[Rule, ...] = (
    _rule("title-prefix", "Get", title_prefix("Get")),
    _rule("title-prefix", "List", title_prefix("List")),
    _rule("title-prefix", "View", title_prefix("View")),
    _rule("prefix", "Head", prefix("Head")),
    _rule("prefix", "Describe", prefix("Describe")),
    _rule("prefix", "Test", prefix("Test")),
    _rule("prefix", "Download", prefix("Download")),
    _rule("prefix", "Report", prefix("Report")),
    _rule("prefix", "Poll", prefix("Poll")),
    _rule("prefix", "Verify", prefix("Verify")),
    _rule("prefix", "Skip", prefix("Skip")),
    _rule("prefix", "Count", prefix("Count")),
    _rule("prefix", "Detect", prefix("Detect")),
    _rule("prefix", "Lookup", prefix("Lookup")),
    _rule("exact", "ConsoleLogin", exact("ConsoleLogin")),
    _rule("suffix", "VirtualMFADevice", suffix("VirtualMFADevice")),
    _rule("exact", "CheckMfa", exact("CheckMfa")),
    _rule("exact", "CheckDomainAvailability", exact("CheckDomainAvailability")),
    _rule("exact", "Decrypt", exact("Decrypt")),
    _rule("exact", "SetTaskStatus", exact("SetTaskStatus")),
    _rule("exact", "BatchGetQueryExecution", exact("BatchGetQueryExecution")),
    _rule("exact", "QueryObjects", exact("QueryObjects")),
    _rule("prefix", "StartQuery", prefix("StartQuery")),
    _rule("prefix", "StopQuery", prefix("StopQuery")),
    _rule("prefix", "CancelQuery", prefix("CancelQuery")),
    _rule("prefix", "BatchGet", prefix("BatchGet")),
    _rule("prefix", "Search", prefix("Search")),
    _rule("exact", "GenerateServiceLastAccessedDetails", exact("GenerateServiceLastAccessedDetails")),
    _rule("exact", "REST.GET.OBJECT_LOCK_CONFIGURATION", exact("REST.GET.OBJECT_LOCK_CONFIGURATION")),
    _rule("exact", "AssumeRoleWithWebIdentity", exact("AssumeRoleWithWebIdentity")),
    _rule("exact", "PutQueryDefinition", exact("PutQueryDefinition"),
          ConditionalSuppress(_from_logs_service)),
    _rule("exact", "PutObject", exact("PutObject"),
          ConditionalSuppress(_is_elb_access_log_delivery)),
    _rule("exact", "AssumeRole", exact("AssumeRole"),
          ConditionalSuppress(_is_service_role_assumption)),
)


# User agents of people clicking around in the console, plus AWS-internal
# tooling acting for them. Checked in order.
USER_AGENT_EXACT = (
    "console.amazonaws.com",
    "signin.amazonaws.com",
    "Coral/Jakarta",
    "Coral/Netty4",
    "AWS CloudWatch Console",
)
USER_AGENT_PREFIXES = (
    "AWS Signin",
    "S3Console/",
    "[S3Console",
    "Mozilla/",
)
# Unanchored, and kept exactly as written upstream ("aws-internal*" really
# means "aws-interna" followed by any number of "l").
USER_AGENT_PATTERNS = tuple(re.compile(p) for p in (
    r"console.*.amazonaws.com",
    r"signin.*.amazonaws.com",
    r"aws-internal*",
))


def is_allow_listed_agent(user_agent: str) -> bool:
    if user_agent in USER_AGENT_EXACT:
        return True
    if user_agent.startswith(USER_AGENT_PREFIXES):
        return True
    return any(pattern.search(user_agent) for pattern in USER_AGENT_PATTERNS)


def match_event_name_rule(record: AuditRecord, rules: Tuple[Rule, ...] = EVENT_NAME_RULES) -> Optional[Rule]:
    """Returns the first rule whose predicate matches, or None."""
    for rule in rules:
        if rule.matches(record):
            return rule
    return None


def classify(record: AuditRecord, rules: Tuple[Rule, ...] = EVENT_NAME_RULES) -> Classification:
    """
    Runs one record through every stage and returns the governing decision.
    Never raises for malformed records; missing fields read as empty values.
    """
    # Stage A: calls made by AWS on its own behalf.
    if record.invoked_by == INTERNAL_INVOKER:
        return Classification(Verdict.SUPPRESS, ACTOR_EXCLUSION_RULE)

    # Stage B: first matching event-name rule governs.
    rule = match_event_name_rule(record, rules)
    if rule is not None:
        if isinstance(rule.action, Suppress):
            return Classification(Verdict.SUPPRESS, rule.name)
        if rule.action.when(record):
            return Classification(Verdict.SUPPRESS, rule.name)

    # Stage C: an absent user agent is not grounds for suppression.
    user_agent = record.user_agent
    if user_agent is not None and not is_allow_listed_agent(user_agent):
        return Classification(Verdict.SUPPRESS, USER_AGENT_RULE)

    return Classification(Verdict.NOTIFY, NOTIFY_RULE)
