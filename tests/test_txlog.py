"""Line codec and the append-only writer."""

import threading

import pytest

from booklog.models import Action, LogEntry
from booklog.txlog import FIELD_COUNT, MalformedLineError, TransactionLog, format_line, parse_line
from tests.conftest import make_record


class TestLineCodec:
    def test_format_insert_line(self):
        entry = LogEntry(1700000000000, "alice", "INSERT", "B1", "Dune", {"author": "Herbert", "fetchedAt": 1000})
        assert format_line(entry) == '1700000000000 | alice | INSERT | B1 | Dune | {"author":"Herbert","fetchedAt":1000}'

    def test_parse_back(self):
        line = '1700000000000 | alice | INSERT | B1 | Dune | {"author":"Herbert","fetchedAt":1000}'
        entry = parse_line(line)
        assert entry.timestamp == 1700000000000
        assert (entry.username, entry.action, entry.id, entry.title) == ("alice", "INSERT", "B1", "Dune")
        assert entry.extra == {"author": "Herbert", "fetchedAt": 1000}

    def test_parse_tolerates_missing_spaces(self):
        entry = parse_line("1|bob|DELETE|B2|Emma|{}")
        assert (entry.username, entry.action, entry.id, entry.title, entry.extra) == ("bob", "DELETE", "B2", "Emma", {})

    @pytest.mark.parametrize("line", [
        "1700000000000 | alice | INSERT | B1",
        "1 | a | INSERT | B1 | Dune | {} | extra",
        "",
    ])
    def test_wrong_field_count(self, line):
        with pytest.raises(MalformedLineError):
            parse_line(line)

    def test_non_numeric_timestamp_becomes_now(self):
        entry = parse_line("yesterday | a | DELETE | B1 | t | {}")
        assert entry.timestamp > 1_600_000_000_000

    def test_pipes_in_fields_keep_six_columns(self):
        entry = LogEntry(5, "al|ice", "INSERT", "B1", "A | B", {"author": "X | Y"})
        line = format_line(entry)
        assert len(line.split("|")) == FIELD_COUNT
        back = parse_line(line)
        assert back.title == "A _ B"
        assert back.extra == {"author": "X | Y"}

    def test_newlines_do_not_split_lines(self):
        entry = LogEntry(5, "alice", "INSERT", "B1", "two\nlines", {"author": "a\nb"})
        assert "\n" not in format_line(entry)


class TestWriter:
    def test_creates_file(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "tx.log"
        TransactionLog(path)
        assert path.exists()
        assert path.read_text() == ""

    def test_log_insert(self, txlog, alice):
        assert txlog.log_insert(alice, make_record("B1", "Dune", fetched_at=1000)) is True
        (entry,) = list(txlog.iter_entries())
        assert entry.action == Action.INSERT.value
        assert entry.username == "alice"
        assert entry.extra == {
            "author": "Herbert", "extraInfo": "", "url": "", "fetchedAt": 1000, "fetchedByUser": "alice",
        }

    def test_log_modify_payload(self, txlog, alice):
        old = make_record("B1", "Dune")
        new = make_record("B1", "Dune Messiah", author="F. Herbert")
        txlog.log_modify(alice, old, new)
        (entry,) = list(txlog.iter_entries())
        assert entry.title == "Dune Messiah"
        assert entry.extra == {
            "oldTitle": "Dune", "newTitle": "Dune Messiah", "oldAuthor": "Herbert", "newAuthor": "F. Herbert",
        }

    def test_audit_helpers(self, txlog, alice):
        txlog.log_delete(alice, "B1", make_record("B1", "Dune"))
        txlog.log_search_online(alice, "dune")
        txlog.log_search_offline(alice, "TITLE", "dune")
        txlog.log_favorite_add(alice, "B1")
        txlog.log_favorite_remove(alice, "B1")
        txlog.log_note_update(alice, "B1")
        entries = list(txlog.iter_entries())
        assert [e.action for e in entries] == [
            "DELETE", "SEARCH_ONLINE", "SEARCH_OFFLINE", "FAVORITE_ADD", "FAVORITE_REMOVE", "NOTE_UPDATE",
        ]
        assert entries[0].title == "Dune"
        assert entries[1].extra == {"query": "dune"}
        assert entries[2].extra == {"queryType": "TITLE", "query": "dune"}
        assert entries[3].extra == {"recordId": "B1"}

    def test_missing_arguments_write_nothing(self, txlog, alice):
        assert txlog.log_insert(None, make_record()) is False
        assert txlog.log_insert(alice, None) is False
        assert txlog.log_delete(alice, None) is False
        assert txlog.log_search_online(alice, None) is False
        assert txlog.read_text() == ""

    def test_append_failure_returns_false(self, tmp_path, alice):
        target = tmp_path / "actually_a_dir"
        target.mkdir()
        log = TransactionLog(target)
        assert log.log_insert(alice, make_record()) is False

    def test_skips_malformed_when_iterating(self, log_path, txlog, alice):
        txlog.log_delete(alice, "B1")
        with log_path.open("a") as f:
            f.write("garbage line\n\n")
        txlog.log_delete(alice, "B2")
        assert [e.id for e in txlog.iter_entries()] == ["B1", "B2"]

    def test_concurrent_appends_do_not_interleave(self, txlog, log_path, alice):
        n_threads, per_thread = 8, 50

        def work(t):
            for i in range(per_thread):
                txlog.log_insert(alice, make_record(f"T{t}-{i}", f"title {t} {i}"))

        threads = [threading.Thread(target=work, args=(t,)) for t in range(n_threads)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()

        lines = log_path.read_text().splitlines()
        assert len(lines) == n_threads * per_thread
        for line in lines:
            parse_line(line)
        # per-thread order survives
        for t in range(n_threads):
            ids = [line.split(" | ")[3] for line in lines if line.split(" | ")[3].startswith(f"T{t}-")]
            assert ids == [f"T{t}-{i}" for i in range(per_thread)]
