# lambdas/trail_filter/identity.py
from typing import Any


def resolve_actor_name(user_identity: Any) -> str:
    """
    Derives the display name of whoever made the call.

    Assumed-role principals look like "<role-id>:<session-name>"; the session
    name is the useful part. An explicit IAM userName always wins. A missing
    userIdentity yields "None".
    """
    if not isinstance(user_identity, dict):
        user_identity = {}

    name = str(user_identity.get("principalId"))
    if ":" in name:
        name = name.split(":", 1)[1]

    user_name = user_identity.get("userName")
    if user_name is not None:
        name = str(user_name)
    return name
