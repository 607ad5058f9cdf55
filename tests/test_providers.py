import contextlib
import sqlite3

import pytest

from multirole.banlist import Banlist, parse_banlists
from multirole.carddb import CardDatabase
from multirole.logsinks import Level, ServiceType
from multirole.providers import (
    BanlistProvider,
    DataProvider,
    GitDiff,
    GitRepoObserver,
    ScriptProvider,
)


class RecordingLog:
    def __init__(self):
        self.records = []

    def log_service(self, svc, level, text, *args):
        self.records.append((svc, level, text.format(*args)))

    def errors(self):
        return [r for r in self.records if r[1] == Level.ERROR]


BANLIST_TEXT = "!first list\n12345 0\n67890 1\n\n!second list\n$whitelist\n111 2\n"


def make_cdb(path, code, attack):
    with CardDatabase(path):
        pass
    with contextlib.closing(sqlite3.connect(path)) as conn:
        conn.execute(
            "INSERT INTO datas VALUES (?,?,?,?,?,?,?,?,?,?,?)",
            (code, 1, 0, 0, 0x21, attack, 1000, 4, 1, 1, 0),
        )
        conn.commit()


def test_observer_is_abstract():
    with pytest.raises(TypeError):
        GitRepoObserver()


def test_git_diff_defaults_are_independent():
    a, b = GitDiff(), GitDiff()
    a.added.append("x")
    assert b.added == []


def test_banlist_provider_loads_matching_files(tmp_path):
    (tmp_path / "lists").mkdir()
    (tmp_path / "lists" / "a.lflist.conf").write_text(BANLIST_TEXT)
    log = RecordingLog()
    provider = BanlistProvider(log, r".*\.lflist\.conf")
    provider.on_add(tmp_path, ["lists/a.lflist.conf"])
    expected = parse_banlists(BANLIST_TEXT.splitlines())
    assert len(expected) == 2
    for hash_value in expected:
        assert isinstance(provider.banlist_by_hash(hash_value), Banlist)
    assert log.errors() == []


def test_banlist_provider_ignores_non_matching(tmp_path):
    (tmp_path / "a.txt").write_text(BANLIST_TEXT)
    provider = BanlistProvider(RecordingLog(), r".*\.lflist\.conf")
    provider.on_add(tmp_path, ["a.txt"])
    for hash_value in parse_banlists(BANLIST_TEXT.splitlines()):
        assert provider.banlist_by_hash(hash_value) is None


def test_banlist_provider_unknown_hash():
    provider = BanlistProvider(RecordingLog(), r".*")
    assert provider.banlist_by_hash(0) is None


def test_banlist_provider_logs_parse_error(tmp_path):
    (tmp_path / "bad.lflist.conf").write_text("!broken\n123\n")
    log = RecordingLog()
    provider = BanlistProvider(log, r".*\.lflist\.conf")
    provider.on_add(tmp_path, ["bad.lflist.conf"])
    assert len(log.errors()) == 1
    assert log.errors()[0][0] == ServiceType.BANLIST_PROVIDER


def test_banlist_provider_diff_adds(tmp_path):
    provider = BanlistProvider(RecordingLog(), r".*\.lflist\.conf")
    hashes = list(parse_banlists(BANLIST_TEXT.splitlines()))
    assert len(hashes) == 2
    for hash_value in hashes:
        assert provider.banlist_by_hash(hash_value) is None
    (tmp_path / "n.lflist.conf").write_text(BANLIST_TEXT)
    provider.on_diff(tmp_path, GitDiff(removed=[], added=["n.lflist.conf"]))
    for hash_value in hashes:
        assert isinstance(provider.banlist_by_hash(hash_value), Banlist)


def test_data_provider_empty_database():
    provider = DataProvider(RecordingLog(), r".*\.cdb")
    assert provider.database().data_from_code(42).code == 0


def test_data_provider_merges_in_sorted_order(tmp_path):
    make_cdb(str(tmp_path / "a.cdb"), 100, 1500)
    make_cdb(str(tmp_path / "b.cdb"), 100, 2500)
    provider = DataProvider(RecordingLog(), r".*\.cdb")
    provider.on_add(tmp_path, ["b.cdb", "a.cdb", "notes.txt"])
    data = provider.database().data_from_code(100)
    assert data.code == 100
    assert data.attack == 2500


def test_data_provider_diff_removes(tmp_path):
    make_cdb(str(tmp_path / "a.cdb"), 100, 1500)
    make_cdb(str(tmp_path / "b.cdb"), 100, 2500)
    provider = DataProvider(RecordingLog(), r".*\.cdb")
    provider.on_add(tmp_path, ["a.cdb", "b.cdb"])
    before = provider.database()
    provider.on_diff(tmp_path, GitDiff(removed=["b.cdb"], added=[]))
    assert provider.database() is not before
    assert provider.database().data_from_code(100).attack == 1500


def test_data_provider_diff_removing_everything(tmp_path):
    make_cdb(str(tmp_path / "a.cdb"), 7, 100)
    provider = DataProvider(RecordingLog(), r".*\.cdb")
    provider.on_add(tmp_path, ["a.cdb"])
    provider.on_diff(tmp_path, GitDiff(removed=["a.cdb"]))
    assert provider.database().data_from_code(7).code == 0


def test_script_provider_loads_by_file_name(tmp_path):
    (tmp_path / "script").mkdir()
    (tmp_path / "script" / "c100.lua").write_bytes(b"-- card 100")
    (tmp_path / "readme.md").write_bytes(b"docs")
    provider = ScriptProvider(RecordingLog(), r".*\.lua")
    provider.on_add(tmp_path, ["script/c100.lua", "readme.md"])
    assert provider.script_from_file_path("c100.lua") == b"-- card 100"
    assert provider.script_from_file_path("readme.md") is None


def test_script_provider_missing_file_logs_error(tmp_path):
    log = RecordingLog()
    provider = ScriptProvider(log, r".*\.lua")
    provider.on_add(tmp_path, ["missing.lua"])
    assert provider.script_from_file_path("missing.lua") is None
    assert [r[0] for r in log.errors()] == [ServiceType.SCRIPT_PROVIDER]


def test_script_provider_diff_replaces(tmp_path):
    target = tmp_path / "c1.lua"
    target.write_bytes(b"old")
    provider = ScriptProvider(RecordingLog(), r".*\.lua")
    provider.on_add(tmp_path, ["c1.lua"])
    target.write_bytes(b"new")
    provider.on_diff(tmp_path, GitDiff(removed=["c1.lua"], added=["c1.lua"]))
    assert provider.script_from_file_path("c1.lua") == b"new"