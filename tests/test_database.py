"""Tests for the SQLite history store."""

import os
import tempfile

import pytest


# Use a temp DB for each test
@pytest.fixture(autouse=True)
def temp_db():
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    from internal.db import database
    database.init_db(path)
    yield path
    os.unlink(path)


def _plan(rule_id="mvp-static-sites", band="minimal") -> dict:
    return {
        "platformFamily": "vercel",
        "matchedRuleId": rule_id,
        "specificity": 2,
        "costBand": {"tierName": band, "lowerBound": 0, "upperBound": 50, "justification": ""},
        "catalogVersion": "v1",
    }


def test_init_creates_tables():
    from internal.db.database import _get_conn
    conn = _get_conn()
    tables = [r[0] for r in conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    ).fetchall()]
    assert "resolutions" in tables
    assert "audit_log" in tables


def test_init_is_idempotent(temp_db):
    from internal.db.database import init_db, record_resolution, list_resolutions
    record_resolution({"phase": "mvp_prototype"}, status="resolved", plan=_plan())
    init_db(temp_db)
    assert len(list_resolutions()) == 1


def test_record_and_get_resolution():
    from internal.db.database import record_resolution, get_resolution
    rid = record_resolution({"phase": "mvp_prototype"}, status="resolved", plan=_plan())
    r = get_resolution(rid)
    assert r["matched_rule_id"] == "mvp-static-sites"
    assert r["cost_band"] == "minimal"
    assert r["catalog_version"] == "v1"
    assert r["plan"]["platformFamily"] == "vercel"
    assert r["error"] is None
    assert get_resolution(rid + 100) is None


def test_record_no_match():
    from internal.db.database import record_resolution, get_resolution
    rid = record_resolution(
        {"phase": "growth_phase"}, status="no_match",
        error={"error": "NoMatchError"}, catalog_version="v2",
    )
    r = get_resolution(rid)
    assert r["status"] == "no_match"
    assert r["plan"] is None
    assert r["matched_rule_id"] is None
    assert r["catalog_version"] == "v2"


def test_list_resolutions_filters():
    from internal.db.database import record_resolution, list_resolutions
    record_resolution({}, status="resolved", plan=_plan("a"))
    record_resolution({}, status="resolved", plan=_plan("b"))
    record_resolution({}, status="no_match", error={"error": "NoMatchError"})
    assert len(list_resolutions()) == 3
    assert [r["matched_rule_id"] for r in list_resolutions(rule_id="a")] == ["a"]
    assert len(list_resolutions(status="no_match")) == 1
    assert len(list_resolutions(limit=2)) == 2


def test_resolution_stats():
    from internal.db.database import record_resolution, resolution_stats
    record_resolution({}, status="resolved", plan=_plan("a"))
    record_resolution({}, status="resolved", plan=_plan("a"))
    record_resolution({}, status="no_match")
    stats = resolution_stats()
    assert stats["by_rule"] == {"a": 2}
    assert stats["by_status"] == {"resolved": 2, "no_match": 1}


def test_audit_log():
    from internal.db.database import append_audit_log, list_audit_log
    append_audit_log("catalog_reload", status="ok", catalog_version="v1", path="/tmp/c.yaml")
    append_audit_log("catalog_reload", status="failed", error="CatalogLoadError",
                     details={"message": "bad"})
    append_audit_log("startup", status="ok")
    entries = list_audit_log(action="catalog_reload")
    assert len(entries) == 2
    assert entries[0]["status"] == "failed"
    assert entries[0]["details"] == {"message": "bad"}
    assert entries[1]["path"] == "/tmp/c.yaml"
    assert len(list_audit_log()) == 3
