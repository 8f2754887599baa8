"""Record / UserRecordMeta / User invariants."""

import pytest

from booklog.models import Action, LogEntry, Record, Role, User, UserRecordMeta, meta_key
from tests.conftest import make_record


class TestRecord:
    def test_equality_is_by_id_only(self):
        a = make_record("B1", "Dune")
        b = make_record("B1", "Something else", author="Other")
        assert a == b
        assert hash(a) == hash(b)
        assert a != make_record("B2", "Dune")

    def test_id_is_stripped_and_immutable(self):
        r = make_record("  B1  ")
        assert r.id == "B1"
        with pytest.raises(AttributeError):
            r.id = "B2"  # type: ignore[misc]

    def test_other_fields_mutate_in_place(self):
        r = make_record()
        r.title = "Dune Messiah"
        r.author = "F. Herbert"
        r.fetched_at = 5
        assert (r.title, r.author, r.fetched_at) == ("Dune Messiah", "F. Herbert", 5)

    @pytest.mark.parametrize("bad_id", ["", "   ", None])
    def test_empty_id_rejected(self, bad_id):
        with pytest.raises(ValueError):
            Record(bad_id, "Dune")

    def test_title_required_but_may_be_empty(self):
        assert Record("B1", "").title == ""
        with pytest.raises(ValueError):
            Record("B1", None)  # type: ignore[arg-type]

    def test_optional_strings_default_empty(self):
        r = Record("B1", "Dune", author=None, extra_info=None, source_url=None)
        assert (r.author, r.extra_info, r.source_url) == ("", "", "")

    def test_copy_is_independent(self):
        r = make_record()
        c = r.copy()
        c.title = "changed"
        assert r.title == "Dune"
        assert c == r

    @pytest.mark.parametrize("bad_id", ["A|B", "A\nB", "A\rB"])
    def test_id_must_survive_a_log_line(self, bad_id):
        with pytest.raises(ValueError):
            Record(bad_id, "Dune")

    def test_from_dict_accepts_log_style_keys(self):
        r = Record.from_dict({
            "id": "B9", "title": "Emma", "author": "Austen",
            "extraInfo": "1815", "url": "http://x", "fetchedAt": 42, "fetchedByUser": "bob",
        })
        assert (r.extra_info, r.source_url, r.fetched_at, r.fetched_by_user) == ("1815", "http://x", 42, "bob")


class TestUserRecordMeta:
    def test_key_and_equality(self):
        m1 = UserRecordMeta("B1", "bob", is_favorite=True)
        m2 = UserRecordMeta(" B1 ", " bob ", note="different")
        assert m1.storage_key == "bob#B1" == meta_key("bob", "B1")
        assert m1 == m2

    @pytest.mark.parametrize(("record_id", "username"), [("", "bob"), ("B1", ""), ("B1", "  ")])
    def test_required_fields(self, record_id, username):
        with pytest.raises(ValueError):
            UserRecordMeta(record_id, username)

    def test_dict_round_trip(self):
        m = UserRecordMeta("B1", "bob", is_favorite=True, note="good", last_updated=7)
        back = UserRecordMeta.from_dict(m.to_dict())
        assert back == m
        assert (back.is_favorite, back.note, back.last_updated) == (True, "good", 7)


def test_log_entry_mutating_flag():
    assert LogEntry(1, "a", Action.DELETE.value, "B1").is_mutating
    assert not LogEntry(1, "a", Action.SEARCH_ONLINE.value).is_mutating
    assert not LogEntry(1, "a", "SOMETHING_NEW").is_mutating


def test_user_roles():
    assert User("root", "h", Role.ADMIN).is_admin
    assert User("bob", "h", Role.USER).can_store_data
    assert not User("guest", "", Role.GUEST).can_store_data
