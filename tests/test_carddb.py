import sqlite3

import pytest

from multirole.carddb import CardData, CardDatabase, CardExtraData
from multirole.constants import SCOPE_OCG, SCOPE_TCG, TYPE_LINK, TYPE_MONSTER


def _make_source(path, rows):
    with CardDatabase(path):
        pass
    conn = sqlite3.connect(path)
    with conn:
        conn.executemany(
            "INSERT INTO datas VALUES (?,?,?,?,?,?,?,?,?,?,?)",
            rows,
        )
        conn.executemany(
            "INSERT INTO texts (id, name) VALUES (?, ?)",
            [(row[0], f"card {row[0]}") for row in rows],
        )
    conn.close()
    return path


@pytest.fixture
def database():
    with CardDatabase() as db:
        yield db


def test_unknown_code_gives_empty_records(database):
    assert database.data_from_code(1234) == CardData()
    assert database.extra_from_code(1234) == CardExtraData()


def test_merge_and_read_card(database, tmp_path):
    setcode = 4 | (3 << 16) | (2 << 32) | (1 << 48)
    level = (6 << 24) | (7 << 16) | 5
    src = _make_source(
        tmp_path / "cards.cdb",
        [(1000, SCOPE_OCG | SCOPE_TCG, 999, setcode, TYPE_MONSTER, 2100, 1800, level, 8, 16, 77)],
    )
    assert database.merge(src) is True
    data = database.data_from_code(1000)
    assert data.code == 1000
    assert data.alias == 999
    assert data.setcodes == (4, 3, 2, 1)
    assert data.type == TYPE_MONSTER
    assert data.attack == 2100
    assert data.defense == 1800
    assert data.link_marker == 0
    assert data.level == 5
    assert data.lscale == 6
    assert data.rscale == 7
    assert data.race == 8
    assert data.attribute == 16
    assert database.extra_from_code(1000) == CardExtraData(SCOPE_OCG | SCOPE_TCG, 77)


def test_link_monster_moves_defense_to_link_marker(database, tmp_path):
    src = _make_source(
        tmp_path / "link.cdb",
        [(2000, 1, 0, 0, TYPE_MONSTER | TYPE_LINK, -2, 0x28, 2, 1, 1, 0)],
    )
    assert database.merge(src)
    data = database.data_from_code(2000)
    assert data.defense == 0
    assert data.link_marker == 0x28
    assert data.attack == -2


def test_later_merge_replaces_card(database, tmp_path):
    first = _make_source(tmp_path / "a.cdb", [(3000, 1, 0, 0, 1, 100, 100, 1, 1, 1, 0)])
    second = _make_source(tmp_path / "b.cdb", [(3000, 1, 0, 0, 1, 500, 100, 1, 1, 1, 0)])
    assert database.merge(first)
    assert database.merge(second)
    assert database.data_from_code(3000).attack == 500


def test_merge_of_unopenable_path_fails(database, tmp_path):
    assert database.merge(tmp_path / "missing-dir" / "cards.cdb") is False


def test_results_are_cached(database, tmp_path):
    src = _make_source(tmp_path / "c.cdb", [(4000, 2, 0, 0, 1, 100, 100, 1, 1, 1, 0)])
    database.merge(src)
    first = database.data_from_code(4000)
    database.data_usage_done(first)
    assert database.data_from_code(4000) is first


def test_disk_database_can_be_reopened(tmp_path):
    path = _make_source(tmp_path / "disk.cdb", [(5000, 2, 0, 0, 1, 1200, 900, 4, 1, 1, 0)])
    with CardDatabase(path) as db:
        assert db.data_from_code(5000).attack == 1200
        assert db.extra_from_code(5000).scope == SCOPE_TCG