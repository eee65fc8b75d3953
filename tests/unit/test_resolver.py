"""Unit tests for entity lookup and the per-run snapshot."""

from authz_provision.clients.models import Group, Permission, Role
from authz_provision.core.resolver import EntityIndex, find
from authz_provision.core.snapshot import Snapshot


def make_permission(id, name, application_id="app1"):
    return Permission(id=id, name=name, application_id=application_id)


class TestFind:
    """Test composite-key lookup over a collection."""

    def test_match_on_all_criteria(self):
        permissions = [
            make_permission("p1", "read:users", "app2"),
            make_permission("p2", "read:users", "app1"),
        ]

        found = find(permissions, application_id="app1", name="read:users")

        assert found.id == "p2"

    def test_not_found(self):
        assert find([make_permission("p1", "read:users")], name="write:users") is None

    def test_empty_collection(self):
        assert find([], name="anything") is None

    def test_first_match_wins(self):
        groups = [Group(id="g1", name="ops"), Group(id="g2", name="ops")]
        assert find(groups, name="ops").id == "g1"

    def test_unknown_attribute_never_matches(self):
        assert find([Group(id="g1", name="ops")], colour="red") is None


class TestEntityIndex:
    """Test the keyed index kept alongside snapshot collections."""

    def test_first_and_all(self):
        index = EntityIndex(lambda group: group.name, [
            Group(id="g1", name="ops"),
            Group(id="g2", name="ops"),
            Group(id="g3", name="dev"),
        ])

        assert index.first("ops").id == "g1"
        assert [group.id for group in index.all("ops")] == ["g1", "g2"]
        assert index.first("missing") is None
        assert index.all("missing") == ()
        assert len(index) == 3

    def test_add_extends_index(self):
        index = EntityIndex(lambda group: group.name)
        assert "ops" not in index

        index.add(Group(id="g1", name="ops"))

        assert "ops" in index
        assert index.first("ops").id == "g1"


class TestSnapshot:
    """Test snapshot ownership of collections and indexes."""

    def test_indexes_built_from_loaded_entities(self):
        snapshot = Snapshot(
            permissions=[make_permission("p1", "read:users")],
            roles=[Role(id="r1", name="admin", application_id="app1")],
            groups=[Group(id="g1", name="ops")],
        )

        assert snapshot.permission_index.first(("app1", "read:users")).id == "p1"
        assert snapshot.role_index.first(("app1", "admin")).id == "r1"
        assert snapshot.group_index.first("ops").id == "g1"
        assert snapshot.counts() == {"permissions": 1, "roles": 1, "groups": 1}

    def test_add_updates_collection_and_index(self):
        snapshot = Snapshot([], [], [])

        snapshot.add_permission(make_permission("p1", "read:users"))
        snapshot.add_role(Role(id="r1", name="admin", application_id="app1"))
        snapshot.add_group(Group(id="g1", name="ops"))

        assert [p.id for p in snapshot.permissions] == ["p1"]
        assert snapshot.permission_index.first(("app1", "read:users")).id == "p1"
        assert snapshot.role_index.first(("app1", "admin")).id == "r1"
        assert snapshot.group_index.first("ops").id == "g1"

    def test_loaded_lists_are_copied(self):
        loaded = [make_permission("p1", "read:users")]
        snapshot = Snapshot(loaded, [], [])

        snapshot.add_permission(make_permission("p2", "write:users"))

        assert len(loaded) == 1

    def test_index_agrees_with_find_for_duplicates(self):
        snapshot = Snapshot(
            permissions=[
                make_permission("p1", "read:users", "app2"),
                make_permission("p2", "read:users"),
                make_permission("p3", "read:users"),
            ],
            roles=[],
            groups=[Group(id="g1", name="ops"), Group(id="g2", name="ops")],
        )
        snapshot.add_permission(make_permission("p4", "write:users"))

        for name in ("read:users", "write:users"):
            assert snapshot.permission_index.first(("app1", name)) is find(
                snapshot.permissions, application_id="app1", name=name,
            )
        assert snapshot.group_index.first("ops") is find(snapshot.groups, name="ops")
