from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from constants import MARKETS, NO_PRODUCT_CODE, SHIFTS, STATES, USER_SHIFTS
from models import UserProfile
from settings import get_settings
from utils.time import measured_at_from_strings

logger = logging.getLogger(__name__)

DB_PATH = Path(get_settings().db_path)

_READING_COLUMNS = (
    "id, shift, location, product_code, product_name, market, state, "
    "measured_date, measured_time, temp_start, temp_middle, temp_end, "
    "recorded_by, measured_at"
)
_USER_COLUMNS = "id, name, badge, email, role, shift, permissions"


def _get_connection() -> sqlite3.Connection:
    conn = sqlite3.connect(
        DB_PATH, detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
    )
    conn.row_factory = sqlite3.Row
    with conn:  # ensure pragma is applied
        conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def initialize_database() -> None:
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    with _get_connection() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS users (
                id            INTEGER PRIMARY KEY AUTOINCREMENT,
                name          TEXT NOT NULL,
                badge         TEXT NOT NULL UNIQUE,
                email         TEXT NOT NULL UNIQUE,
                role          TEXT NOT NULL DEFAULT 'user',
                shift         TEXT,
                permissions   TEXT NOT NULL DEFAULT '[]',  -- JSON list
                password_hash TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS products (
                code    TEXT PRIMARY KEY,
                name    TEXT NOT NULL,
                market  TEXT
            );

            CREATE TABLE IF NOT EXISTS readings (
                id            INTEGER PRIMARY KEY AUTOINCREMENT,
                shift         TEXT NOT NULL,
                location      TEXT NOT NULL,
                product_code  TEXT NOT NULL DEFAULT 'N/A',
                product_name  TEXT NOT NULL,
                market        TEXT NOT NULL,
                state         TEXT NOT NULL,
                measured_date TEXT NOT NULL,            -- as entered, YYYY-MM-DD
                measured_time TEXT NOT NULL,            -- as entered, HH:MM
                temp_start    REAL NOT NULL,
                temp_middle   REAL NOT NULL,
                temp_end      REAL NOT NULL,
                recorded_by   INTEGER,
                measured_at   TEXT NOT NULL             -- ISO-8601 minute precision
            );

            CREATE INDEX IF NOT EXISTS idx_readings_measured_at
                ON readings(measured_at);
            """)


def _profile_from_row(row: sqlite3.Row) -> UserProfile:
    return UserProfile(
        id=int(row["id"]),
        name=row["name"],
        badge=row["badge"],
        email=row["email"],
        role=row["role"],
        shift=row["shift"],
        permissions=frozenset(json.loads(row["permissions"] or "[]")),
    )


def _required_text(label: str, value: Optional[str]) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError(f"The field {label} is required.")
    return cleaned


def _choice(label: str, value: Optional[str], options: Iterable[str]) -> str:
    cleaned = _required_text(label, value)
    if cleaned not in options:
        raise ValueError(f"Invalid {label}: {cleaned}.")
    return cleaned


def _temperature(label: str, value) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"The field {label} is required.")
    try:
        return round(float(value), 1)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid {label}: {value}.") from exc


# Readings
def add_reading(
    *,
    shift: str,
    location: str,
    product_name: str,
    market: str,
    state: str,
    measured_date: str,
    measured_time: str,
    temp_start,
    temp_middle,
    temp_end,
    recorded_by: Optional[int],
    product_code: Optional[str] = None,
) -> int:
    row = (
        _choice("shift", shift, SHIFTS),
        _required_text("location", location),
        (product_code or "").strip().upper() or NO_PRODUCT_CODE,
        _required_text("product", product_name),
        _choice("market", market, MARKETS),
        _choice("state", state, STATES),
        _required_text("date", measured_date),
        _required_text("time", measured_time),
        _temperature("start temperature", temp_start),
        _temperature("middle temperature", temp_middle),
        _temperature("end temperature", temp_end),
        recorded_by,
        measured_at_from_strings(measured_date, measured_time),
    )
    with _get_connection() as conn:
        cur = conn.execute(
            """
            INSERT INTO readings (
                shift, location, product_code, product_name, market, state,
                measured_date, measured_time, temp_start, temp_middle, temp_end,
                recorded_by, measured_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            row,
        )
        reading_id = int(cur.lastrowid)
    logger.info("Reading recorded", extra={"reading_id": reading_id, "user_id": recorded_by})
    return reading_id


def _reading_filter(
    start_iso: str,
    end_iso: str,
    location: Optional[str],
    shift: Optional[str],
    market: Optional[str],
    product_code: Optional[str],
    state: Optional[str],
) -> Tuple[str, list]:
    clauses = ["measured_at >= ?", "measured_at <= ?"]
    params: list = [start_iso, end_iso]
    for column, value in (
        ("location", location),
        ("shift", shift),
        ("market", market),
        ("product_code", product_code),
        ("state", state),
    ):
        if value is not None:
            clauses.append(f"{column} = ?")
            params.append(value)
    return " AND ".join(clauses), params


def fetch_readings(
    start_iso: str,
    end_iso: str,
    *,
    location: Optional[str] = None,
    shift: Optional[str] = None,
    market: Optional[str] = None,
    product_code: Optional[str] = None,
    state: Optional[str] = None,
) -> pd.DataFrame:
    """Readings with ``start_iso <= measured_at <= end_iso``, newest first.

    Each optional filter is an exact match; ``None`` means no restriction.
    """
    where, params = _reading_filter(start_iso, end_iso, location, shift, market, product_code, state)
    query = f"SELECT {_READING_COLUMNS} FROM readings WHERE {where} ORDER BY measured_at DESC, id DESC"
    with _get_connection() as conn:
        df = pd.read_sql_query(query, conn, params=params)
    return df


def delete_reading(reading_id: int) -> int:
    with _get_connection() as conn:
        cur = conn.execute("DELETE FROM readings WHERE id = ?", (int(reading_id),))
        deleted = cur.rowcount
    logger.info("Reading deleted", extra={"reading_id": reading_id, "count": deleted})
    return deleted


def delete_readings(
    start_iso: str,
    end_iso: str,
    *,
    location: Optional[str] = None,
    shift: Optional[str] = None,
    market: Optional[str] = None,
    product_code: Optional[str] = None,
    state: Optional[str] = None,
) -> int:
    """Delete every reading ``fetch_readings`` would return for the same arguments."""
    where, params = _reading_filter(start_iso, end_iso, location, shift, market, product_code, state)
    with _get_connection() as conn:
        cur = conn.execute(f"DELETE FROM readings WHERE {where}", params)
        deleted = cur.rowcount
    logger.warning("Readings deleted by filter", extra={"count": deleted})
    return deleted


def delete_readings_before(cutoff_iso: str) -> int:
    with _get_connection() as conn:
        cur = conn.execute("DELETE FROM readings WHERE measured_at < ?", (cutoff_iso,))
        deleted = cur.rowcount
    logger.warning("Retention sweep", extra={"cutoff": cutoff_iso, "count": deleted})
    return deleted


def delete_all_readings() -> int:
    with _get_connection() as conn:
        deleted = int(conn.execute("SELECT COUNT(*) FROM readings").fetchone()[0])
        conn.execute("DELETE FROM readings")
    logger.warning("All readings deleted", extra={"count": deleted})
    return deleted


# Products
_UPSERT_PRODUCT = (
    "INSERT INTO products(code, name, market) VALUES (?, ?, ?) "
    "ON CONFLICT(code) DO UPDATE SET name = excluded.name, market = excluded.market"
)


def _product_row(code: str, name: str, market: Optional[str]) -> Tuple[str, str, Optional[str]]:
    cleaned_code = _required_text("code", code).upper()
    cleaned_name = _required_text("product", name)
    if market is not None and market not in MARKETS:
        raise ValueError(f"Invalid market: {market}.")
    return cleaned_code, cleaned_name, market


def add_product(code: str, name: str, market: Optional[str] = None) -> str:
    row = _product_row(code, name, market)
    with _get_connection() as conn:
        conn.execute(_UPSERT_PRODUCT, row)
    return row[0]


def apply_product_changes(
    upserts: Iterable[Tuple[str, str, Optional[str]]], deletions: Iterable[str] = ()
) -> int:
    """Validate every (code, name, market) row, then write all changes in one transaction.

    Raises ValueError naming the first bad row; nothing is written in that case.
    """
    rows = []
    for line, (code, name, market) in enumerate(upserts, start=1):
        try:
            rows.append(_product_row(code, name, market))
        except ValueError as exc:
            raise ValueError(f"Row {line}: {exc}") from exc
    codes = [(code or "").strip().upper() for code in deletions]
    with _get_connection() as conn:
        conn.executemany("DELETE FROM products WHERE code = ?", [(c,) for c in codes if c])
        conn.executemany(_UPSERT_PRODUCT, rows)
    logger.info("Product catalog updated", extra={"count": len(rows) + len(codes)})
    return len(rows) + len(codes)


def fetch_products() -> pd.DataFrame:
    with _get_connection() as conn:
        df = pd.read_sql_query(
            "SELECT code, name, market FROM products ORDER BY code ASC", conn
        )
    return df


def get_product(code: str) -> Optional[dict]:
    cleaned = (code or "").strip().upper()
    if not cleaned:
        return None
    with _get_connection() as conn:
        row = conn.execute(
            "SELECT code, name, market FROM products WHERE code = ?", (cleaned,)
        ).fetchone()
    return dict(row) if row is not None else None


def delete_product(code: str) -> None:
    with _get_connection() as conn:
        conn.execute("DELETE FROM products WHERE code = ?", ((code or "").strip().upper(),))


# Users
def create_user(
    *,
    name: str,
    badge: str,
    email: str,
    password_hash: str,
    role: str,
    shift: Optional[str] = None,
    permissions: Iterable[str] = (),
) -> int:
    try:
        with _get_connection() as conn:
            cur = conn.execute(
                "INSERT INTO users (name, badge, email, role, shift, permissions, password_hash) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (name, badge, email, role, shift, json.dumps(sorted(set(permissions))), password_hash),
            )
            user_id = int(cur.lastrowid)
    except sqlite3.IntegrityError as exc:
        raise ValueError("The badge number is already in use.") from exc
    logger.info("User created", extra={"user_id": user_id})
    return user_id


def fetch_users(include_admins: bool = True) -> List[UserProfile]:
    query = f"SELECT {_USER_COLUMNS} FROM users"
    if not include_admins:
        query += " WHERE role <> 'admin'"
    query += " ORDER BY LOWER(name) ASC"
    with _get_connection() as conn:
        rows = conn.execute(query).fetchall()
    return [_profile_from_row(row) for row in rows]


def get_user(user_id: int) -> Optional[UserProfile]:
    with _get_connection() as conn:
        row = conn.execute(
            f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (int(user_id),)
        ).fetchone()
    return _profile_from_row(row) if row is not None else None


def fetch_user_credentials(login: str) -> Optional[Tuple[UserProfile, str]]:
    """Profile and password hash for a badge number or e-mail address."""
    cleaned = (login or "").strip()
    with _get_connection() as conn:
        row = conn.execute(
            f"SELECT {_USER_COLUMNS}, password_hash FROM users "
            "WHERE badge = ? OR LOWER(email) = LOWER(?)",
            (cleaned, cleaned),
        ).fetchone()
    if row is None:
        return None
    return _profile_from_row(row), row["password_hash"]


def count_admins() -> int:
    with _get_connection() as conn:
        row = conn.execute("SELECT COUNT(*) FROM users WHERE role = 'admin'").fetchone()
    return int(row[0])


def update_user_profile(
    user_id: int, name: str, shift: Optional[str], permissions: Iterable[str]
) -> None:
    cleaned = _required_text("name", name)
    if shift is not None and shift not in USER_SHIFTS:
        raise ValueError(f"Invalid shift: {shift}.")
    with _get_connection() as conn:
        conn.execute(
            "UPDATE users SET name = ?, shift = ?, permissions = ? WHERE id = ?",
            (cleaned, shift, json.dumps(sorted(set(permissions))), int(user_id)),
        )
    logger.info("User profile updated", extra={"user_id": user_id})


def set_password_hash(user_id: int, password_hash: str) -> None:
    with _get_connection() as conn:
        conn.execute(
            "UPDATE users SET password_hash = ? WHERE id = ?", (password_hash, int(user_id))
        )
    logger.info("Password changed", extra={"user_id": user_id})


def delete_user(user_id: int) -> None:
    with _get_connection() as conn:
        conn.execute("DELETE FROM users WHERE id = ?", (int(user_id),))
    logger.info("User deleted", extra={"user_id": user_id})
