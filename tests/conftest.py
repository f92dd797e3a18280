"""Shared catalog builders for the test suite."""

import os
import sys

import pytest
import yaml

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


FAILOVER = {
    "mission_critical": [
        {"strategy": "active_active", "rto": "1m", "rpo": "0s"},
        {"strategy": "warm_standby", "rto": "15m", "rpo": "1m"},
        {"strategy": "pilot_light", "rto": "1h", "rpo": "15m"},
    ],
    "non_critical": [
        {"strategy": "backup_restore", "rto": "4h", "rpo": "1h"},
        {"strategy": "backup_restore_cross_region", "rto": "1d", "rpo": "4h"},
        {"strategy": "rebuild_from_source", "rto": "3d", "rpo": "1d"},
    ],
}

COST_BANDS = [
    {"name": "minimal", "lower": 0, "upper": 50, "justification": "free tiers"},
    {"name": "low", "lower": 50, "upper": 5000, "justification": "single region"},
    {"name": "high", "lower": 5000, "upper": None, "justification": "dedicated"},
]

PLATFORM_CLASSES = {
    "vercel": "edge",
    "netlify": "edge",
    "managed_paas": "cluster",
    "managed_kubernetes": "cluster",
    "kubernetes_private_traditional_dedicated": "cluster",
}

COST_MATRIX = {
    "edge": {"small": "minimal", "medium": "minimal", "large": "low", "xlarge": "low"},
    "cluster": {"small": "low", "medium": "low", "large": "high", "xlarge": "high"},
}


def rule(rule_id, platform="managed_paas", priority=None, controls=None, **predicates):
    """Build one raw rule record; predicate kwargs use catalog (camelCase) keys."""
    record = {
        "id": rule_id,
        "predicates": predicates,
        "bundle": {
            "platformFamily": platform,
            "containerBase": "distroless",
            "infraTooling": "terraform",
            "securityControls": controls or ["tls_everywhere"],
            "rationale": f"{rule_id} rationale",
        },
    }
    if priority is not None:
        record["priority"] = priority
    return record


def catalog_doc(rules, **overrides) -> dict:
    doc = {
        "rules": rules,
        "failover": FAILOVER,
        "costBands": COST_BANDS,
        "platformClasses": PLATFORM_CLASSES,
        "costMatrix": COST_MATRIX,
    }
    doc.update(overrides)
    return doc


def catalog_yaml(rules, **overrides) -> str:
    return yaml.safe_dump(catalog_doc(rules, **overrides), sort_keys=False)


@pytest.fixture
def write_catalog(tmp_path):
    """Write a catalog YAML file and return its path."""
    counter = {"n": 0}

    def _write(rules, **overrides) -> str:
        counter["n"] += 1
        path = tmp_path / f"catalog-{counter['n']}.yaml"
        path.write_text(catalog_yaml(rules, **overrides), encoding="utf-8")
        return str(path)

    return _write
