"""
Tests for access policy role resolution.
"""
import uuid
from types import SimpleNamespace

import pytest

from backend.core.exceptions import ForbiddenError, UnauthorizedError
from backend.services.access_policy import (
    AccessPolicy,
    Actor,
    AdminOverrideRule,
    ClaimRoleRule,
    OwnershipRule,
    Role,
    build_default_policy,
    role_satisfies,
)


ORG_ID = uuid.uuid4()


def _record(organization_id=ORG_ID):
    return SimpleNamespace(organization_id=organization_id)


class TestRoleSatisfies:
    """Staff ranks are ordered; the owner lane is separate."""

    @pytest.mark.parametrize(
        "role,required,expected",
        [
            (Role.ADMIN, Role.MEMBER, True),
            (Role.ADMIN, Role.MANAGER, True),
            (Role.MANAGER, Role.ADMIN, False),
            (Role.MEMBER, Role.MANAGER, False),
            (Role.MEMBER, Role.MEMBER, True),
            (Role.APPLICANT_OWNER, Role.MEMBER, False),
            (Role.ADMIN, Role.APPLICANT_OWNER, False),
            (Role.APPLICANT_OWNER, Role.APPLICANT_OWNER, True),
            (Role.NONE, Role.MEMBER, False),
            (Role.NONE, Role.NONE, True),
        ],
    )
    def test_matrix(self, role, required, expected):
        assert role_satisfies(role, required) is expected


class TestRuleChain:
    """Tests for rule ordering in the default policy."""

    def test_claim_role_wins(self):
        policy = build_default_policy(override_emails=[])
        actor = Actor(id="s1", display_name="Staff", org_role="org:manager")

        assert policy.resolve_role(actor) == Role.MANAGER

    def test_unknown_claim_falls_through(self):
        policy = build_default_policy(override_emails=[])
        actor = Actor(id="s1", display_name="Staff", org_role="org:billing")

        assert policy.resolve_role(actor) == Role.NONE

    def test_admin_override_by_email(self):
        policy = build_default_policy(override_emails=["Boss@Foundation.org"])
        actor = Actor(id="s2", display_name="Boss", email="boss@foundation.org")

        assert policy.resolve_role(actor) == Role.ADMIN

    def test_override_precedes_ownership(self):
        policy = build_default_policy(override_emails=["owner@foodbank.org"])
        actor = Actor(
            id="u1",
            display_name="Owner",
            email="owner@foodbank.org",
            organization_id=ORG_ID,
        )

        assert policy.resolve_role(actor, _record()) == Role.ADMIN

    def test_ownership_for_own_record(self):
        policy = build_default_policy(override_emails=[])
        actor = Actor(id="u1", display_name="Owner", organization_id=ORG_ID)

        assert policy.resolve_role(actor, _record()) == Role.APPLICANT_OWNER

    def test_no_role_for_other_organization(self):
        policy = build_default_policy(override_emails=[])
        actor = Actor(id="u1", display_name="Owner", organization_id=uuid.uuid4())

        assert policy.resolve_role(actor, _record()) == Role.NONE

    def test_staff_are_never_owners(self):
        policy = build_default_policy(override_emails=[])
        actor = Actor(
            id="s1",
            display_name="Staff",
            organization_id=ORG_ID,
            org_role="org:member",
        )

        assert policy.resolve_role(actor, _record()) == Role.MEMBER

    def test_custom_chain(self):
        policy = AccessPolicy([OwnershipRule(), ClaimRoleRule()])
        actor = Actor(id="s1", display_name="Staff", organization_id=ORG_ID, org_role="org:admin")

        assert policy.resolve_role(actor, _record()) == Role.APPLICANT_OWNER

    def test_override_rule_is_case_insensitive(self):
        rule = AdminOverrideRule(["ADMIN@foundation.org"])

        assert rule.evaluate(Actor(id="a", display_name="A", email="admin@FOUNDATION.org"), None) == Role.ADMIN
        assert rule.evaluate(Actor(id="b", display_name="B"), None) is None


class TestRequire:
    """Tests for AccessPolicy.require and require_access."""

    def test_missing_actor_is_unauthorized(self):
        policy = build_default_policy(override_emails=[])

        with pytest.raises(UnauthorizedError):
            policy.require(None, Role.MEMBER)

    def test_insufficient_role_is_forbidden(self):
        policy = build_default_policy(override_emails=[])
        actor = Actor(id="s1", display_name="Staff", org_role="org:member")

        with pytest.raises(ForbiddenError) as exc_info:
            policy.require(actor, Role.ADMIN, action="release decisions")

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["required_role"] == "admin"
        assert exc_info.value.detail["actual_role"] == "member"

    def test_require_returns_resolved_role(self):
        policy = build_default_policy(override_emails=[])
        actor = Actor(id="s1", display_name="Staff", org_role="org:admin")

        assert policy.require(actor, Role.MEMBER) == Role.ADMIN

    def test_require_access_accepts_owner_and_staff(self):
        policy = build_default_policy(override_emails=[])
        owner = Actor(id="u1", display_name="Owner", organization_id=ORG_ID)
        staff = Actor(id="s1", display_name="Staff", org_role="org:member")

        assert policy.require_access(owner, _record()) == Role.APPLICANT_OWNER
        assert policy.require_access(staff, _record()) == Role.MEMBER

    def test_require_access_rejects_strangers(self):
        policy = build_default_policy(override_emails=[])
        stranger = Actor(id="u2", display_name="Stranger", organization_id=uuid.uuid4())

        with pytest.raises(ForbiddenError):
            policy.require_access(stranger, _record())
