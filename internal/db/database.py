"""SQLite history store for the deployment strategy resolver.

Stores:
  - Resolution history (every resolve request answered over HTTP, with the
    matched rule and catalog version so a decision can be replayed)
  - Audit log (catalog reloads, successful or not)

The engine itself never touches this module; handlers record results after
``resolve`` returns.

The database file defaults to 'idp.db' in the working directory.
Set IDP_DB_PATH env var to override.
"""

import json
import os
import sqlite3
import threading
import time
from typing import Optional

_DB_PATH = os.environ.get("IDP_DB_PATH", "idp.db")
_local = threading.local()


def _get_conn() -> sqlite3.Connection:
    """Get a thread-local SQLite connection."""
    if not hasattr(_local, "conn") or _local.conn is None:
        _local.conn = sqlite3.connect(_DB_PATH, check_same_thread=False)
        _local.conn.row_factory = sqlite3.Row
        _local.conn.execute("PRAGMA journal_mode=WAL")
    return _local.conn


def init_db(db_path: Optional[str] = None):
    """Initialize the database schema. Safe to call multiple times."""
    if db_path:
        global _DB_PATH
        _DB_PATH = db_path
        # Reset thread-local connection
        if hasattr(_local, "conn") and _local.conn:
            _local.conn.close()
            _local.conn = None

    db_dir = os.path.dirname(os.path.abspath(_DB_PATH))
    os.makedirs(db_dir, exist_ok=True)

    conn = _get_conn()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS resolutions (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            profile         TEXT NOT NULL,
            status          TEXT NOT NULL,
            matched_rule_id TEXT,
            specificity     INTEGER,
            platform_family TEXT,
            cost_band       TEXT,
            catalog_version TEXT,
            plan            TEXT,
            error           TEXT,
            created_at      REAL NOT NULL
        );

        CREATE TABLE IF NOT EXISTS audit_log (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp       REAL NOT NULL,
            action          TEXT NOT NULL,
            status          TEXT NOT NULL,
            catalog_version TEXT,
            path            TEXT,
            error           TEXT,
            details         TEXT NOT NULL DEFAULT '{}'
        );

        CREATE INDEX IF NOT EXISTS idx_resolutions_rule ON resolutions(matched_rule_id);
        CREATE INDEX IF NOT EXISTS idx_resolutions_status ON resolutions(status);
        CREATE INDEX IF NOT EXISTS idx_audit_log_timestamp ON audit_log(timestamp);
        CREATE INDEX IF NOT EXISTS idx_audit_log_action ON audit_log(action);
    """)
    conn.commit()


# ── Resolution History ───────────────────────────────────────────────────────

def record_resolution(profile: dict, status: str, plan: dict = None,
                      error: dict = None, catalog_version: str = None) -> int:
    conn = _get_conn()
    cursor = conn.execute(
        """INSERT INTO resolutions
           (profile, status, matched_rule_id, specificity, platform_family,
            cost_band, catalog_version, plan, error, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            json.dumps(profile, sort_keys=True),
            status,
            plan.get("matchedRuleId") if plan else None,
            plan.get("specificity") if plan else None,
            plan.get("platformFamily") if plan else None,
            plan["costBand"]["tierName"] if plan else None,
            catalog_version or (plan.get("catalogVersion") if plan else None),
            json.dumps(plan) if plan else None,
            json.dumps(error) if error else None,
            time.time(),
        ),
    )
    conn.commit()
    return cursor.lastrowid


def get_resolution(resolution_id: int) -> Optional[dict]:
    conn = _get_conn()
    r = conn.execute("SELECT * FROM resolutions WHERE id = ?", (resolution_id,)).fetchone()
    if not r:
        return None
    return _row_to_resolution(r)


def list_resolutions(limit: int = 50, rule_id: str = None, status: str = None) -> list[dict]:
    conn = _get_conn()
    query = "SELECT * FROM resolutions WHERE 1=1"
    params = []
    if rule_id:
        query += " AND matched_rule_id = ?"
        params.append(rule_id)
    if status:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY id DESC LIMIT ?"
    params.append(limit)
    rows = conn.execute(query, params).fetchall()
    return [_row_to_resolution(r) for r in rows]


def resolution_stats() -> dict:
    """Count resolutions per matched rule and per status."""
    conn = _get_conn()
    by_rule = conn.execute(
        """SELECT matched_rule_id, COUNT(*) AS n FROM resolutions
           WHERE matched_rule_id IS NOT NULL GROUP BY matched_rule_id"""
    ).fetchall()
    by_status = conn.execute(
        "SELECT status, COUNT(*) AS n FROM resolutions GROUP BY status"
    ).fetchall()
    return {
        "by_rule": {r["matched_rule_id"]: r["n"] for r in by_rule},
        "by_status": {r["status"]: r["n"] for r in by_status},
    }


def _row_to_resolution(r) -> dict:
    return {
        "id": r["id"],
        "profile": json.loads(r["profile"]),
        "status": r["status"],
        "matched_rule_id": r["matched_rule_id"],
        "specificity": r["specificity"],
        "platform_family": r["platform_family"],
        "cost_band": r["cost_band"],
        "catalog_version": r["catalog_version"],
        "plan": json.loads(r["plan"]) if r["plan"] else None,
        "error": json.loads(r["error"]) if r["error"] else None,
        "created_at": r["created_at"],
    }


# ── Audit Log ───────────────────────────────────────────────────────────────

def append_audit_log(action: str, status: str, catalog_version: str = None,
                     path: str = None, error: str = None, details: dict = None) -> int:
    conn = _get_conn()
    cursor = conn.execute(
        """INSERT INTO audit_log
           (timestamp, action, status, catalog_version, path, error, details)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (time.time(), action, status, catalog_version, path, error,
         json.dumps(details or {})),
    )
    conn.commit()
    return cursor.lastrowid


def list_audit_log(limit: int = 100, action: str = None) -> list[dict]:
    conn = _get_conn()
    query = "SELECT * FROM audit_log WHERE 1=1"
    params = []
    if action:
        query += " AND action = ?"
        params.append(action)
    query += " ORDER BY id DESC LIMIT ?"
    params.append(limit)
    rows = conn.execute(query, params).fetchall()
    return [_row_to_audit(r) for r in rows]


def _row_to_audit(r) -> dict:
    return {
        "id": r["id"],
        "timestamp": r["timestamp"],
        "action": r["action"],
        "status": r["status"],
        "catalog_version": r["catalog_version"],
        "path": r["path"],
        "error": r["error"],
        "details": json.loads(r["details"]),
    }
