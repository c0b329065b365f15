"""Tests for permission resolution over the inheritance graph."""

import pytest

from rolegraph.auth.permissions import (
    Abilities,
    Ability,
    Permission,
    PermissionAction,
    PermissionResource,
    Portal,
    Role,
    Scope,
)
from rolegraph.errors import CircularInheritanceError, DanglingParentError, RoleNotFoundError
from rolegraph.services.permission_resolver import PermissionResolver, walk_chain
from rolegraph.services.role_store import RoleStore

R = PermissionResource
A = PermissionAction


def _role(name, parent=None, grants=(), portals=(), **abilities):
    return Role(
        name=name,
        parent_role=parent,
        portals=frozenset(portals),
        permissions=frozenset(Permission(r, a, s) for r, a, s in grants),
        abilities=Abilities(**abilities),
    )


@pytest.fixture
def store():
    return RoleStore(
        [
            _role("Base", grants=[(R.JOBS, A.VIEW, Scope.ALL)], portals=[Portal.NETA]),
            _role(
                "Middle",
                parent="Base",
                grants=[(R.JOBS, A.VIEW, Scope.OWN), (R.REPORTS, A.CREATE, Scope.DIVISION)],
                portals=[Portal.LAB],
                can_manage_content=True,
            ),
            _role("Leaf", parent="Middle", grants=[(R.REPORTS, A.CREATE, Scope.OWN)]),
        ]
    )


@pytest.fixture
def resolver(store):
    return PermissionResolver(store)


class TestWalkChain:
    def test_yields_nearest_first(self, store):
        assert [r.name for r in walk_chain("Leaf", store.snapshot())] == ["Leaf", "Middle", "Base"]

    def test_missing_start(self, store):
        with pytest.raises(RoleNotFoundError):
            list(walk_chain("Ghost", store.snapshot()))

    def test_missing_parent(self):
        roles = {"Orphan": _role("Orphan", parent="Gone")}
        with pytest.raises(DanglingParentError) as exc_info:
            list(walk_chain("Orphan", roles))
        assert exc_info.value.role_name == "Orphan"
        assert exc_info.value.parent_role == "Gone"

    def test_cycle(self):
        roles = {"A": _role("A", parent="B"), "B": _role("B", parent="C"), "C": _role("C", parent="A")}
        with pytest.raises(CircularInheritanceError) as exc_info:
            list(walk_chain("A", roles))
        assert exc_info.value.chain == ("A", "B", "C", "A")


class TestResolve:
    def test_widest_scope_wins(self, resolver):
        effective = resolver.resolve("Leaf")
        assert effective.scope_for(R.JOBS, A.VIEW) == Scope.ALL
        assert effective.scope_for(R.REPORTS, A.CREATE) == Scope.DIVISION
        assert effective.scope_for(R.USERS, A.VIEW) is None

    def test_portals_and_abilities_merge(self, resolver):
        effective = resolver.resolve("Leaf")
        assert effective.portals == frozenset({Portal.NETA, Portal.LAB})
        assert effective.abilities.can_manage_content is True
        assert effective.abilities.can_manage_users is False

    def test_idempotent(self, resolver):
        assert resolver.resolve("Leaf") == resolver.resolve("Leaf")

    def test_insertion_order_does_not_matter(self):
        grants = [(R.JOBS, A.VIEW, Scope.OWN), (R.JOBS, A.VIEW, Scope.DIVISION), (R.JOBS, A.EDIT, Scope.OWN)]
        forward = PermissionResolver(RoleStore([_role("X", grants=grants)])).resolve("X")
        backward = PermissionResolver(RoleStore([_role("X", grants=grants[::-1])])).resolve("X")
        assert forward.permissions == backward.permissions
        assert forward.scope_for(R.JOBS, A.VIEW) == Scope.DIVISION

    def test_one_grant_per_key(self, resolver):
        keys = [p.key for p in resolver.resolve("Leaf").permissions]
        assert len(keys) == len(set(keys))

    def test_to_dict(self, resolver):
        data = resolver.resolve("Middle").to_dict()
        assert data["role"] == "Middle"
        assert data["chain"] == ["Middle", "Base"]
        assert data["portals"] == ["lab", "neta"]
        assert {"resource": "jobs", "action": "view", "scope": "all"} in data["permissions"]
        assert data["abilities"]["canManageContent"] is True

    def test_uses_given_snapshot(self, resolver):
        snapshot = {"Solo": _role("Solo", portals=[Portal.HR])}
        assert resolver.resolve("Solo", snapshot).portals == frozenset({Portal.HR})


class TestCheckParent:
    def test_none_parent_is_fine(self, resolver):
        resolver.check_parent("Base", None)

    def test_descendant_as_parent_is_circular(self, resolver):
        with pytest.raises(CircularInheritanceError) as exc_info:
            resolver.check_parent("Base", "Leaf")
        assert exc_info.value.role_name == "Base"

    def test_missing_parent_reported_against_role(self, resolver):
        with pytest.raises(DanglingParentError) as exc_info:
            resolver.check_parent("New", "Ghost")
        assert exc_info.value.role_name == "New"

    def test_alias_counts_as_self(self, resolver):
        # Renaming Base to Root while pointing it at its own descendant.
        with pytest.raises(CircularInheritanceError):
            resolver.check_parent("Root", "Leaf", aliases=("Base",))


class TestParentCandidates:
    def test_excludes_self_and_descendants(self, resolver):
        assert resolver.parent_candidates("Base") == []
        assert resolver.parent_candidates("Middle") == ["Base"]

    def test_new_role_may_pick_anything(self, resolver):
        assert resolver.parent_candidates("Brand New") == ["Base", "Leaf", "Middle"]


class TestAccessChecks:
    def test_has_permission_scope_coverage(self, resolver):
        assert resolver.has_permission("Leaf", R.JOBS, A.VIEW, Scope.ALL)
        assert resolver.has_permission("Leaf", R.REPORTS, A.CREATE, Scope.OWN)
        assert not resolver.has_permission("Leaf", R.REPORTS, A.CREATE, Scope.ALL)
        assert not resolver.has_permission("Leaf", R.USERS, A.DELETE)

    def test_unknown_role_denied(self, resolver):
        assert resolver.has_permission("Ghost", R.JOBS, A.VIEW) is False
        assert resolver.has_portal_access("Ghost", Portal.NETA) is False
        assert resolver.has_ability("Ghost", Ability.VIEW_ALL_DATA) is False

    def test_portal_and_ability(self, resolver):
        assert resolver.has_portal_access("Leaf", Portal.NETA) is True
        assert resolver.has_portal_access("Base", Portal.LAB) is False
        assert resolver.has_ability("Leaf", Ability.MANAGE_CONTENT) is True
        assert resolver.has_ability("Base", Ability.MANAGE_CONTENT) is False


class TestExplainPermission:
    def test_direct_grant(self, resolver):
        decision = resolver.explain_permission("Leaf", R.REPORTS, A.CREATE, Scope.OWN)
        assert decision.granted is True
        assert decision.reason == "Direct permission"
        assert decision.source_role == "Leaf"
        assert decision.granted_scope == Scope.OWN

    def test_wider_parent_grant_is_inherited(self, resolver):
        decision = resolver.explain_permission("Leaf", R.REPORTS, A.CREATE, Scope.DIVISION)
        assert decision.granted is True
        assert decision.reason == "Inherited from parent role: Middle"
        assert decision.source_role == "Middle"

    def test_grant_from_root_of_chain(self, resolver):
        decision = resolver.explain_permission("Leaf", R.JOBS, A.VIEW, Scope.ALL)
        assert decision.source_role == "Base"
        assert decision.granted_scope == Scope.ALL

    def test_insufficient_scope(self, resolver):
        decision = resolver.explain_permission("Leaf", R.REPORTS, A.CREATE, Scope.ALL)
        assert decision.granted is False
        assert decision.granted_scope == Scope.DIVISION
        assert "does not cover" in decision.reason

    def test_no_matching_permission(self, resolver):
        decision = resolver.explain_permission("Leaf", R.USERS, A.DELETE)
        assert decision.granted is False
        assert decision.reason == "No matching permission found"
        assert decision.source_role is None

    def test_unresolvable_role(self, resolver):
        decision = resolver.explain_permission("Ghost", R.JOBS, A.VIEW)
        assert decision.granted is False
        assert decision.reason.startswith("Role cannot be resolved")

    def test_to_dict(self, resolver):
        assert resolver.explain_permission("Leaf", R.REPORTS, A.CREATE).to_dict() == {
            "granted": True,
            "reason": "Direct permission",
            "sourceRole": "Leaf",
            "grantedScope": "own",
        }
