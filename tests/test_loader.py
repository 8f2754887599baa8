"""Seeding a store from a bootstrap file."""

import pytest

from booklog.loader import load_initial_data
from tests.conftest import make_record, write_lines


def test_loads_insert_lines_only(store, tmp_path):
    path = write_lines(
        tmp_path / "initial.txt",
        "# seed data",
        "",
        '0 | system | INSERT | B1 | Dune | {"author":"Herbert","fetchedAt":1000}',
        '0 | system | INSERT | B2 | Emma | {"author":"Austen"}',
        "0 | system | DELETE | B1 | Dune | {}",
        '0 | system | SEARCH_ONLINE |  |  | {"query":"x"}',
    )
    assert load_initial_data(store, path) == 2
    assert store.get("B1").fetched_at == 1000
    assert store.get("B1").fetched_by_user == "system"
    assert store.get("B2").author == "Austen"


def test_missing_fetched_at_means_load_time(store, tmp_path):
    path = write_lines(tmp_path / "initial.txt", "0 | system | INSERT | B1 | Dune | {}")
    load_initial_data(store, path)
    assert store.get("B1").fetched_at > 1_600_000_000_000


def test_bad_lines_are_skipped(store, tmp_path):
    path = write_lines(
        tmp_path / "initial.txt",
        "0 | system | INSERT | B1",
        "0 | system | INSERT |  | no id | {}",
        "0 | system | INSERT | B3 |  | {}",
        "0 | system | INSERT | B4 | Ok | {}",
    )
    assert load_initial_data(store, path) == 1
    assert [r.id for r in store.get_all()] == ["B4"]


def test_does_not_clear_existing(store, tmp_path):
    store.insert(make_record("OLD"))
    path = write_lines(tmp_path / "initial.txt", "0 | system | INSERT | B1 | Dune | {}")
    load_initial_data(store, path)
    assert store.size() == 2


def test_missing_file(store, tmp_path):
    with pytest.raises(FileNotFoundError):
        load_initial_data(store, tmp_path / "nope.txt")


def test_writes_nothing_to_the_log(store, tmp_path, log_path):
    path = write_lines(tmp_path / "initial.txt", "0 | system | INSERT | B1 | Dune | {}")
    load_initial_data(store, path)
    assert not log_path.exists()


def test_undecodable_bytes_are_tolerated(store, tmp_path):
    path = tmp_path / "initial.txt"
    path.write_bytes(
        b"0 | system | INSERT | B1 | \xff\xfe | {}\n"
        b"0 | system | INSERT | B2 | Emma | {}\n"
    )
    assert load_initial_data(store, path) == 2
    assert store.get("B2").title == "Emma"
