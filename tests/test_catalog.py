"""Tests for the rule catalog loader."""

import pytest

from conftest import COST_MATRIX, FAILOVER, PLATFORM_CLASSES, catalog_yaml, rule
from internal.catalog.loader import DEFAULT_PRIORITY, load_catalog, load_catalog_file
from internal.catalog.store import DEFAULT_CATALOG_PATH
from internal.models.errors import AmbiguousMatchError, CatalogLoadError
from internal.models.types import Concrete, CriticalityTier, Phase, Wildcard


def test_default_catalog_loads():
    snapshot = load_catalog_file(DEFAULT_CATALOG_PATH)
    assert len(snapshot.rules) > 10
    assert set(snapshot.failover) == set(CriticalityTier)
    assert [r.position for r in snapshot.rules] == list(range(len(snapshot.rules)))


def test_omitted_axes_are_wildcards():
    snapshot = load_catalog(catalog_yaml([rule("mvp", phase="mvp_prototype")]))
    r = snapshot.rule("mvp")
    assert r.predicates[0] == Concrete(Phase.MVP_PROTOTYPE)
    assert all(isinstance(p, Wildcard) for p in r.predicates[1:])
    assert r.specificity == 1


def test_explicit_any_is_wildcard():
    snapshot = load_catalog(catalog_yaml([rule("r", phase="mvp_prototype", appType="ANY")]))
    assert snapshot.rule("r").specificity == 1


def test_priority_defaults_and_declaration_position():
    snapshot = load_catalog(catalog_yaml([
        rule("a", phase="mvp_prototype"),
        rule("b", phase="growth_phase", priority=5),
    ]))
    assert snapshot.rule("a").priority == DEFAULT_PRIORITY
    assert snapshot.rule("b").priority == 5
    assert snapshot.rule("b").position == 1


def test_version_is_stable_for_same_text():
    text = catalog_yaml([rule("a")])
    assert load_catalog(text).version == load_catalog(text).version
    assert load_catalog(text).version != load_catalog(catalog_yaml([rule("b")])).version


def test_bundle_fields_loaded():
    snapshot = load_catalog(catalog_yaml([rule("a", controls=["zero_trust", "waf"])]))
    bundle = snapshot.rule("a").bundle
    assert bundle.security_controls == frozenset({"zero_trust", "waf"})
    assert bundle.rationale == "a rationale"


# ── Ambiguity ────────────────────────────────────────────────────────────────

def test_identical_predicate_sets_rejected_naming_both_ids():
    with pytest.raises(AmbiguousMatchError) as exc_info:
        load_catalog(catalog_yaml([
            rule("first", phase="mvp_prototype", appType="static_sites"),
            rule("unrelated", phase="growth_phase"),
            rule("second", appType="static_sites", phase="mvp_prototype", platform="netlify"),
        ]))
    assert exc_info.value.details["rule_ids"] == ["first", "second"]
    assert "first" in exc_info.value.message and "second" in exc_info.value.message


def test_explicit_any_and_omitted_axis_are_the_same_predicate_set():
    with pytest.raises(AmbiguousMatchError):
        load_catalog(catalog_yaml([
            rule("a", phase="mvp_prototype"),
            rule("b", phase="mvp_prototype", scale="ANY"),
        ]))


def test_every_conflict_group_listed():
    with pytest.raises(AmbiguousMatchError) as exc_info:
        load_catalog(catalog_yaml([
            rule("a1", phase="mvp_prototype"),
            rule("a2", phase="mvp_prototype"),
            rule("b1", scale="large"),
            rule("b2", scale="large"),
        ]))
    assert exc_info.value.details["conflicts"] == [["a1", "a2"], ["b1", "b2"]]


def test_duplicate_rule_id_rejected():
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(catalog_yaml([rule("a", phase="mvp_prototype"), rule("a", phase="growth_phase")]))
    assert exc_info.value.details["rule_id"] == "a"


# ── Schema / enum validation ─────────────────────────────────────────────────

def test_unknown_predicate_value_rejected():
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(catalog_yaml([rule("a", phase="seed_stage")]))
    assert exc_info.value.details["axis"] == "phase"
    assert exc_info.value.details["rule_id"] == "a"
    assert "ANY" in exc_info.value.details["allowed"]


def test_unknown_axis_rejected():
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(catalog_yaml([rule("a", region="eu-west-1")]))
    assert exc_info.value.details["axes"] == ["region"]


def test_missing_section_rejected():
    text = catalog_yaml([rule("a")]).replace("costMatrix:", "costMatrixx:")
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(text)
    assert exc_info.value.details["missing"] == ["costMatrix"]


def test_invalid_yaml_rejected():
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog("rules: [unclosed")
    assert exc_info.value.details["line"] == 1


def test_invalid_yaml_error_does_not_echo_file_content():
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog("rules: [secret-token-123")
    assert "secret-token-123" not in str(exc_info.value.to_dict())


def test_empty_rules_rejected():
    with pytest.raises(CatalogLoadError):
        load_catalog(catalog_yaml([]))


def test_bundle_missing_platform_rejected():
    bad = rule("a")
    del bad["bundle"]["platformFamily"]
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(catalog_yaml([bad]))
    assert exc_info.value.details["missing"] == ["platformFamily"]


def test_non_integer_priority_rejected():
    with pytest.raises(CatalogLoadError):
        load_catalog(catalog_yaml([rule("a", priority="high")]))


def test_missing_file_is_catalog_load_error(tmp_path):
    with pytest.raises(CatalogLoadError):
        load_catalog_file(str(tmp_path / "nope.yaml"))


def test_non_utf8_file_is_catalog_load_error(tmp_path):
    path = tmp_path / "latin1.yaml"
    path.write_bytes(b"rules: \xff")
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog_file(str(path))
    assert exc_info.value.details["path"] == str(path)


# ── Failover table ───────────────────────────────────────────────────────────

def test_failover_tightening_rto_rejected():
    failover = dict(FAILOVER)
    failover["mission_critical"] = [
        {"strategy": "active_active", "rto": "15m", "rpo": "0s"},
        {"strategy": "warm_standby", "rto": "5m", "rpo": "1m"},
        {"strategy": "pilot_light", "rto": "1h", "rpo": "15m"},
    ]
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(catalog_yaml([rule("a")], failover=failover))
    assert exc_info.value.details["tier"] == "mission_critical"
    assert exc_info.value.details["objective"] == "rto"


def test_failover_unknown_tier_rejected():
    failover = dict(FAILOVER)
    failover["tier_zero"] = FAILOVER["non_critical"]
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(catalog_yaml([rule("a")], failover=failover))
    assert exc_info.value.details["tier"] == "tier_zero"


# ── Cost tables ──────────────────────────────────────────────────────────────

def test_platform_without_class_rejected():
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(catalog_yaml([rule("a", platform="bare_metal")]))
    assert exc_info.value.details["platform_family"] == "bare_metal"


def test_cost_matrix_must_cover_every_scale():
    matrix = {k: dict(v) for k, v in COST_MATRIX.items()}
    del matrix["cluster"]["xlarge"]
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(catalog_yaml([rule("a")], costMatrix=matrix))
    assert exc_info.value.details["missing"] == ["xlarge"]


def test_platform_class_missing_from_matrix_rejected():
    classes = dict(PLATFORM_CLASSES, managed_paas="mystery")
    with pytest.raises(CatalogLoadError) as exc_info:
        load_catalog(catalog_yaml([rule("a")], platformClasses=classes))
    assert exc_info.value.details["platform_class"] == "mystery"
