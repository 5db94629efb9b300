import sqlite3
from pathlib import Path

import pytest

import db


def _add(**overrides) -> int:
    fields = dict(
        shift="1",
        location="Túnel 1",
        product_code="f100",
        product_name="Frango Inteiro",
        market="external",
        state="frozen",
        measured_date="2026-02-01",
        measured_time="10:00",
        temp_start=-19.0,
        temp_middle=-20.04,
        temp_end="-21",
        recorded_by=1,
    )
    fields.update(overrides)
    return db.add_reading(**fields)


def test_add_reading_and_fetch_in_range(temp_db_path: Path):
    rid = _add()
    df = db.fetch_readings("2026-02-01T00:00", "2026-02-01T23:59")
    assert len(df) == 1
    row = df.iloc[0]
    assert int(row["id"]) == rid
    assert row["measured_at"] == "2026-02-01T10:00"
    assert row["product_code"] == "F100"
    assert float(row["temp_middle"]) == pytest.approx(-20.0)
    assert float(row["temp_end"]) == pytest.approx(-21.0)


def test_missing_product_code_is_stored_as_na(temp_db_path: Path):
    _add(product_code="  ")
    df = db.fetch_readings("2026-02-01T00:00", "2026-02-01T23:59")
    assert df.iloc[0]["product_code"] == "N/A"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"shift": ""}, "shift"),
        ({"location": " "}, "location"),
        ({"market": "abroad"}, "market"),
        ({"state": None}, "state"),
        ({"temp_start": None}, "start temperature"),
        ({"temp_end": "cold"}, "end temperature"),
        ({"measured_time": "25:99"}, "date or time"),
    ],
)
def test_add_reading_rejects_invalid_input(temp_db_path: Path, overrides, message):
    with pytest.raises(ValueError, match=message):
        _add(**overrides)
    assert db.fetch_readings("2000-01-01T00:00", "2100-01-01T00:00").empty


def test_fetch_readings_range_is_inclusive_and_newest_first(temp_db_path: Path):
    _add(measured_date="2026-01-31", measured_time="23:59")
    first = _add(measured_date="2026-02-01", measured_time="00:00")
    last = _add(measured_date="2026-02-02", measured_time="23:59")
    _add(measured_date="2026-02-03", measured_time="00:00")

    df = db.fetch_readings("2026-02-01T00:00", "2026-02-02T23:59")
    assert df["id"].astype(int).tolist() == [last, first]


def test_fetch_readings_exact_match_filters(temp_db_path: Path):
    _add(location="Túnel 1", shift="1", market="external", state="frozen")
    keep = _add(location="Câmara A", shift="2", market="internal", state="chilled", product_code="X1")
    _add(location="Câmara A", shift="1", market="internal", state="chilled")

    df = db.fetch_readings(
        "2026-02-01T00:00",
        "2026-02-01T23:59",
        location="Câmara A",
        shift="2",
        market="internal",
        state="chilled",
        product_code="X1",
    )
    assert df["id"].astype(int).tolist() == [keep]


def test_delete_reading_returns_affected_count(temp_db_path: Path):
    rid = _add()
    assert db.delete_reading(rid) == 1
    assert db.delete_reading(rid) == 0
    assert db.fetch_readings("2026-02-01T00:00", "2026-02-01T23:59").empty


def test_retention_sweep_deletes_only_older_readings(temp_db_path: Path):
    _add(measured_date="2026-01-01", measured_time="08:00")
    _add(measured_date="2026-01-10", measured_time="08:00")
    keep = _add(measured_date="2026-01-20", measured_time="08:00")

    assert db.delete_readings_before("2026-01-15T00:00") == 2
    df = db.fetch_readings("2000-01-01T00:00", "2100-01-01T00:00")
    assert df["id"].astype(int).tolist() == [keep]


def test_delete_all_readings(temp_db_path: Path):
    _add()
    _add(measured_time="11:00")
    assert db.delete_all_readings() == 2
    assert db.delete_all_readings() == 0


def test_products_crud(temp_db_path: Path):
    assert db.add_product("f100", "Frango Inteiro", "external") == "F100"
    assert db.get_product(" f100 ") == {"code": "F100", "name": "Frango Inteiro", "market": "external"}

    db.add_product("F100", "Frango Inteiro Congelado", "internal")
    products = db.fetch_products()
    assert products["name"].tolist() == ["Frango Inteiro Congelado"]

    with pytest.raises(ValueError):
        db.add_product("F200", "Asa", "abroad")

    db.delete_product("F100")
    assert db.get_product("F100") is None
    assert db.get_product("") is None


def test_users_crud(temp_db_path: Path):
    uid = db.create_user(
        name="Ana",
        badge="1234",
        email="1234@ind.com.br",
        password_hash="x",
        role="user",
        shift="2",
        permissions=["/view", "/record", "/view"],
    )
    user = db.get_user(uid)
    assert user.name == "Ana"
    assert user.permissions == frozenset({"/view", "/record"})
    assert not user.is_admin

    with pytest.raises(ValueError, match="already in use"):
        db.create_user(name="Bia", badge="1234", email="other@ind.com.br", password_hash="x", role="user")

    db.update_user_profile(uid, "Ana Maria", "1", ["/charts"])
    updated = db.get_user(uid)
    assert (updated.name, updated.shift, updated.permissions) == ("Ana Maria", "1", frozenset({"/charts"}))

    profile, password_hash = db.fetch_user_credentials("1234@IND.com.br")
    assert profile.id == uid and password_hash == "x"
    assert db.fetch_user_credentials("nobody") is None

    db.delete_user(uid)
    assert db.get_user(uid) is None


def test_fetch_users_can_exclude_admins(temp_db_path: Path):
    db.create_user(name="Root", badge="admin", email="a@x", password_hash="x", role="admin")
    db.create_user(name="bruno", badge="2", email="b@x", password_hash="x", role="user")
    db.create_user(name="Carla", badge="3", email="c@x", password_hash="x", role="user")

    assert [u.name for u in db.fetch_users()] == ["bruno", "Carla", "Root"]
    assert [u.name for u in db.fetch_users(include_admins=False)] == ["bruno", "Carla"]
    assert db.count_admins() == 1


def test_missing_database_directory_is_created(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    target = tmp_path / "nested" / "qc.db"
    monkeypatch.setattr(db, "DB_PATH", target)
    db.initialize_database()
    assert target.exists()
    with sqlite3.connect(target) as conn:
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
    assert {"users", "products", "readings"} <= tables


def test_delete_readings_removes_only_matching_rows(temp_db_path: Path):
    _add(location="Túnel 1", market="external")
    _add(location="Túnel 1", market="internal")
    _add(location="Câmara A", market="external")
    outside = _add(location="Túnel 1", market="external", measured_date="2026-02-05")

    assert db.delete_readings("2026-02-01T00:00", "2026-02-01T23:59", location="Túnel 1", market="external") == 1

    remaining = db.fetch_readings("2000-01-01T00:00", "2100-01-01T00:00")
    assert len(remaining) == 3
    assert outside in remaining["id"].astype(int).tolist()
    assert db.fetch_readings("2026-02-01T00:00", "2026-02-01T23:59", location="Túnel 1", market="external").empty
    assert db.delete_readings("2026-02-01T00:00", "2026-02-01T23:59") == 2


def test_update_user_profile_rejects_unknown_shift(temp_db_path: Path):
    uid = db.create_user(name="Ana", badge="1", email="1@x", password_hash="x", role="user", shift="1")

    with pytest.raises(ValueError, match="Invalid shift"):
        db.update_user_profile(uid, "Ana", "9", [])
    assert db.get_user(uid).shift == "1"
    db.update_user_profile(uid, "Ana", None, [])
    assert db.get_user(uid).shift is None


def test_apply_product_changes_is_all_or_nothing(temp_db_path: Path):
    db.add_product("A1", "Asa", "internal")

    with pytest.raises(ValueError, match="Row 2"):
        db.apply_product_changes([("b2", "Coxa", "external"), ("C3", "Peito", "abroad")], ["A1"])
    assert db.fetch_products()["code"].tolist() == ["A1"]

    assert db.apply_product_changes([("b2", "Coxa", "external"), ("C3", "Peito", None)], ["a1"]) == 3
    assert db.fetch_products()["code"].tolist() == ["B2", "C3"]
