"""
tests/test_protocol_store.py -- Unit tests for protocols/store.ProtocolStore.

Covers:
  - save without id creates; save with own id updates in place
  - non-owner save against a public row forks; the original is untouched
  - delete twice: second call is not-found
  - private-to-someone-else and missing ids give identical NotFoundError
  - publish is owner-only and one-way; an owner save never makes a public row private
  - list scopes and ordering
  - deleting a user who owns protocols is refused by the foreign key
"""

from __future__ import annotations

import pytest
from conftest import make_user
from sqlalchemy.exc import IntegrityError

from core.errors import NotFoundError, ValidationError
from protocols.models import ListScope, Visibility


@pytest.fixture
def owners(user_store):
    return make_user(user_store, "owner@example.com"), make_user(user_store, "other@example.com")


class TestSave:
    def test_create_then_update_in_place(self, protocol_store, owners) -> None:
        owner, _ = owners
        pid = protocol_store.save(owner.id, "Plate A", '{"columns": []}')
        assert pid > 0

        same = protocol_store.save(owner.id, "Plate A v2", '{"columns": [1]}', protocol_id=pid)
        assert same == pid
        stored = protocol_store.get_visible(pid, owner.id)
        assert stored.name == "Plate A v2"
        assert stored.data == '{"columns": [1]}'
        assert len(protocol_store.list_for_user(owner.id, ListScope.MINE)) == 1

    def test_non_owner_save_on_public_row_forks(self, protocol_store, owners) -> None:
        owner, other = owners
        pid = protocol_store.save(owner.id, "Shared", "original")
        protocol_store.publish(pid, owner.id)

        fork_id = protocol_store.save(other.id, "Mine now", "changed", protocol_id=pid)
        assert fork_id != pid

        original = protocol_store.get_visible(pid, owner.id)
        assert original.name == "Shared"
        assert original.data == "original"
        assert original.user_id == owner.id

        fork = protocol_store.get_visible(fork_id, other.id)
        assert fork.user_id == other.id
        assert fork.data == "changed"
        assert fork.visibility is Visibility.PRIVATE

    def test_save_with_unknown_id_inserts(self, protocol_store, owners) -> None:
        owner, _ = owners
        new_id = protocol_store.save(owner.id, "Fresh", "data", protocol_id=9999)
        assert new_id != 9999

    @pytest.mark.parametrize("name,data", [("", "x"), ("x", ""), ("   ", "x"), ("x", "  ")])
    def test_blank_name_or_data_rejected(self, protocol_store, owners, name, data) -> None:
        owner, _ = owners
        with pytest.raises(ValidationError):
            protocol_store.save(owner.id, name, data)


class TestVisibility:
    def test_owner_save_keeps_row_public(self, protocol_store, owners) -> None:
        owner, _ = owners
        pid = protocol_store.save(owner.id, "Open", "v1")
        protocol_store.publish(pid, owner.id)

        assert protocol_store.save(owner.id, "Open v2", "v2", protocol_id=pid) == pid
        stored = protocol_store.get_visible(pid, owner.id)
        assert stored.is_public
        assert stored.data == "v2"

    def test_private_and_missing_are_indistinguishable(self, protocol_store, owners) -> None:
        owner, other = owners
        pid = protocol_store.save(owner.id, "Secret", "data")

        with pytest.raises(NotFoundError) as private_exc:
            protocol_store.get_visible(pid, other.id)
        with pytest.raises(NotFoundError) as missing_exc:
            protocol_store.get_visible(pid + 1000, other.id)
        assert private_exc.value.message == missing_exc.value.message

    def test_public_row_readable_by_anyone(self, protocol_store, owners) -> None:
        owner, other = owners
        pid = protocol_store.save(owner.id, "Open", "data")
        protocol_store.publish(pid, owner.id)
        assert protocol_store.get_visible(pid, other.id).is_public

    def test_publish_is_owner_only(self, protocol_store, owners) -> None:
        owner, other = owners
        pid = protocol_store.save(owner.id, "Mine", "data")
        with pytest.raises(NotFoundError):
            protocol_store.publish(pid, other.id)
        assert not protocol_store.get_visible(pid, owner.id).is_public


class TestDelete:
    def test_delete_twice(self, protocol_store, owners) -> None:
        owner, _ = owners
        pid = protocol_store.save(owner.id, "Temp", "data")
        protocol_store.delete(pid, owner.id)
        with pytest.raises(NotFoundError):
            protocol_store.delete(pid, owner.id)

    def test_non_owner_cannot_delete_public_row(self, protocol_store, owners) -> None:
        owner, other = owners
        pid = protocol_store.save(owner.id, "Open", "data")
        protocol_store.publish(pid, owner.id)
        with pytest.raises(NotFoundError):
            protocol_store.delete(pid, other.id)
        assert protocol_store.get_visible(pid, owner.id).id == pid

    def test_owner_with_protocols_cannot_be_deleted(self, protocol_store, user_store, owners) -> None:
        owner, _ = owners
        protocol_store.save(owner.id, "Keeps me alive", "data")
        with pytest.raises(IntegrityError):
            user_store.delete_user(owner.id)
        assert user_store.get_by_id(owner.id) is not None


class TestListing:
    def test_scopes_and_ordering(self, protocol_store, owners) -> None:
        owner, other = owners
        mine_old = protocol_store.save(owner.id, "mine old", "d")
        mine_new = protocol_store.save(owner.id, "mine new", "d")
        theirs_private = protocol_store.save(other.id, "theirs private", "d")
        theirs_public = protocol_store.save(other.id, "theirs public", "d")
        protocol_store.publish(theirs_public, other.id)

        mine = [p.id for p in protocol_store.list_for_user(owner.id, ListScope.MINE)]
        assert mine == [mine_new, mine_old]

        visible = [p.id for p in protocol_store.list_for_user(owner.id, ListScope.VISIBLE)]
        assert visible == [theirs_public, mine_new, mine_old]
        assert theirs_private not in visible

    def test_list_rows_omit_data(self, protocol_store, owners) -> None:
        owner, _ = owners
        protocol_store.save(owner.id, "x", "big document")
        assert all(p.data is None for p in protocol_store.list_for_user(owner.id))

    def test_scope_from_query(self) -> None:
        assert ListScope.from_query("account") is ListScope.MINE
        assert ListScope.from_query(None) is ListScope.VISIBLE
        assert ListScope.from_query("anything") is ListScope.VISIBLE
