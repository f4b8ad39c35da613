# tests/test_identity.py
import pytest

from lambdas.trail_filter.identity import resolve_actor_name


def test_assumed_role_session_name():
    assert resolve_actor_name({"principalId": "AROAEXAMPLE:session-bob"}) == "session-bob"


def test_user_name_overrides_principal():
    identity = {"principalId": "AROAEXAMPLE:session-bob", "userName": "alice"}
    assert resolve_actor_name(identity) == "alice"


def test_plain_principal_is_kept():
    assert resolve_actor_name({"principalId": "AIDAEXAMPLE"}) == "AIDAEXAMPLE"


def test_only_first_separator_splits():
    assert resolve_actor_name({"principalId": "AROAEXAMPLE:a:b"}) == "a:b"


def test_null_user_name_does_not_override():
    assert resolve_actor_name({"principalId": "AROAEXAMPLE:ci", "userName": None}) == "ci"


def test_non_string_values_are_stringified():
    assert resolve_actor_name({"principalId": 123456789012}) == "123456789012"


@pytest.mark.parametrize("user_identity", [None, {}, "not-a-mapping", ["principalId"]])
def test_missing_identity_falls_back_to_none_string(user_identity):
    assert resolve_actor_name(user_identity) == "None"
