"""Rule catalog loader.

The catalog is an external YAML document the engine only ever reads:

  rules:            ordered list of {id, predicates, bundle, priority?}
  failover:         criticality tier -> [primary, secondary, tertiary]
  costBands:        ordered list of {name, lower, upper, justification}
  platformClasses:  platform family -> platform class
  costMatrix:       platform class -> scale -> band name

Loading is fail-closed: any violation aborts the whole load and nothing is
returned. A successfully loaded CatalogSnapshot is immutable.
"""

import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

import yaml

from internal.models.errors import AmbiguousMatchError, CatalogLoadError, ValidationError
from internal.models.types import (
    AXES, AXES_BY_NAME, WILDCARD, WILDCARD_TOKEN, Concrete,
    RecommendationBundle, Rule,
)
from internal.resolver.cost import (
    build_bands, build_cost_matrix, check_cost_monotonicity, check_platform_coverage,
)
from internal.resolver.failover import build_chain

logger = logging.getLogger(__name__)

DEFAULT_PRIORITY = 100
_REQUIRED_SECTIONS = ("rules", "failover", "costBands", "platformClasses", "costMatrix")
_BUNDLE_FIELDS = ("platformFamily", "containerBase", "infraTooling")


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable, fully validated view of one catalog version.

    ``rules`` is kept in declaration order, so ``rules[i].position == i``.
    """
    version: str
    rules: tuple
    failover: Mapping
    cost_bands: tuple
    platform_classes: Mapping
    cost_matrix: Mapping
    source: str = ""

    def rule(self, rule_id: str) -> Optional[Rule]:
        for r in self.rules:
            if r.id == rule_id:
                return r
        return None

    def band(self, name: str):
        for b in self.cost_bands:
            if b.tier_name == name:
                return b
        raise KeyError(name)

    def band_rank(self, name: str) -> int:
        for i, b in enumerate(self.cost_bands):
            if b.tier_name == name:
                return i
        raise KeyError(name)

    def summary(self) -> dict:
        return {
            "version": self.version,
            "source": self.source,
            "rules": [
                {
                    "id": r.id,
                    "position": r.position,
                    "priority": r.priority,
                    "specificity": r.specificity,
                    "predicates": r.predicate_map(),
                    "platformFamily": r.bundle.platform_family,
                }
                for r in self.rules
            ],
            "failoverTiers": sorted(t.value for t in self.failover),
            "costBands": [b.to_dict() for b in self.cost_bands],
        }


def load_catalog_file(path: str) -> CatalogSnapshot:
    """Read and validate a catalog file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise CatalogLoadError(f"Cannot read catalog {path}: {exc.strerror}", path=str(path)) from None
    except UnicodeDecodeError:
        raise CatalogLoadError(f"Catalog {path} is not valid UTF-8", path=str(path)) from None
    return load_catalog(text, source=str(path))


def load_catalog(text: str, source: str = "<string>") -> CatalogSnapshot:
    """Parse and validate catalog YAML text into a snapshot.

    Raises:
        CatalogLoadError: schema violation, unknown enum value, or a failed
            failover / cost consistency check.
        AmbiguousMatchError: two or more rules share a predicate set.
    """
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = {"line": mark.line + 1, "column": mark.column + 1} if mark else {}
        raise CatalogLoadError(f"Catalog {source} is not valid YAML", source=source, **where) from None

    if not isinstance(doc, dict):
        raise CatalogLoadError(f"Catalog {source} must be a mapping", source=source)
    missing = [s for s in _REQUIRED_SECTIONS if s not in doc]
    if missing:
        raise CatalogLoadError(f"Catalog {source} is missing sections: {missing}",
                               source=source, missing=missing)

    rules = _build_rules(doc["rules"])
    _check_ambiguity(rules)

    failover = _build_failover(doc["failover"])
    bands = build_bands(doc["costBands"])
    platform_classes = _build_platform_classes(doc["platformClasses"])
    cost_matrix = build_cost_matrix(doc["costMatrix"], bands)
    check_platform_coverage(rules, platform_classes, cost_matrix)

    snapshot = CatalogSnapshot(
        version=hashlib.sha256(text.encode("utf-8")).hexdigest()[:12],
        rules=rules,
        failover=MappingProxyType(failover),
        cost_bands=bands,
        platform_classes=MappingProxyType(platform_classes),
        cost_matrix=MappingProxyType({k: MappingProxyType(v) for k, v in cost_matrix.items()}),
        source=source,
    )
    check_cost_monotonicity(snapshot)

    logger.info("Loaded catalog %s from %s: %d rules, %d failover tiers, %d cost bands",
                snapshot.version, source, len(rules), len(failover), len(bands))
    return snapshot


# ── Rules ────────────────────────────────────────────────────────────────────

def _build_rules(raw_rules) -> tuple:
    if not isinstance(raw_rules, list) or not raw_rules:
        raise CatalogLoadError("rules must be a non-empty list")

    rules = []
    seen_ids = {}
    for position, raw in enumerate(raw_rules):
        if not isinstance(raw, dict) or "id" not in raw:
            raise CatalogLoadError(f"rules[{position}] must be a mapping with an id",
                                   position=position)
        rule_id = str(raw["id"])
        if rule_id in seen_ids:
            raise CatalogLoadError(
                f"Duplicate rule id '{rule_id}' at positions {seen_ids[rule_id]} and {position}",
                rule_id=rule_id, positions=[seen_ids[rule_id], position],
            )
        seen_ids[rule_id] = position

        priority = raw.get("priority", DEFAULT_PRIORITY)
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise CatalogLoadError(f"Rule '{rule_id}' priority must be an integer",
                                   rule_id=rule_id)

        rules.append(Rule(
            id=rule_id,
            predicates=_build_predicates(rule_id, raw.get("predicates") or {}),
            bundle=_build_bundle(rule_id, raw.get("bundle")),
            priority=priority,
            position=position,
        ))
    return tuple(rules)


def _build_predicates(rule_id: str, raw: dict) -> tuple:
    if not isinstance(raw, dict):
        raise CatalogLoadError(f"Rule '{rule_id}' predicates must be a mapping", rule_id=rule_id)

    unknown = [k for k in raw if k not in AXES_BY_NAME]
    if unknown:
        raise CatalogLoadError(
            f"Rule '{rule_id}' uses unknown axes {unknown}",
            rule_id=rule_id, axes=unknown, allowed=[a.name for a in AXES],
        )

    predicates = []
    for axis in AXES:
        value = raw.get(axis.name, WILDCARD_TOKEN)
        if value == WILDCARD_TOKEN:
            predicates.append(WILDCARD)
            continue
        try:
            predicates.append(Concrete(axis.parse(value)))
        except ValidationError as exc:
            raise CatalogLoadError(
                f"Rule '{rule_id}': {exc.message}",
                rule_id=rule_id, axis=axis.name, value=value,
                allowed=axis.allowed() + [WILDCARD_TOKEN],
            ) from None
    return tuple(predicates)


def _build_bundle(rule_id: str, raw) -> RecommendationBundle:
    if not isinstance(raw, dict):
        raise CatalogLoadError(f"Rule '{rule_id}' needs a bundle mapping", rule_id=rule_id)
    missing = [f for f in _BUNDLE_FIELDS if not raw.get(f)]
    if missing:
        raise CatalogLoadError(f"Rule '{rule_id}' bundle is missing {missing}",
                               rule_id=rule_id, missing=missing)
    controls = raw.get("securityControls") or []
    if not isinstance(controls, list) or not all(isinstance(c, str) for c in controls):
        raise CatalogLoadError(f"Rule '{rule_id}' securityControls must be a list of strings",
                               rule_id=rule_id)
    return RecommendationBundle(
        platform_family=str(raw["platformFamily"]),
        container_base=str(raw["containerBase"]),
        infra_tooling=str(raw["infraTooling"]),
        security_controls=frozenset(controls),
        rationale=str(raw.get("rationale", "")).strip(),
    )


def _check_ambiguity(rules: tuple):
    """Fail if any two rules share an identical predicate set."""
    groups = defaultdict(list)
    for rule in rules:
        groups[rule.predicates].append(rule.id)
    conflicts = [ids for ids in groups.values() if len(ids) > 1]
    if conflicts:
        raise AmbiguousMatchError(conflicts)


# ── Failover & cost tables ───────────────────────────────────────────────────

def _build_failover(raw) -> dict:
    if not isinstance(raw, dict):
        raise CatalogLoadError("failover must be a mapping of tier -> chain")
    chains = {}
    for tier_name, steps in raw.items():
        chain = build_chain(str(tier_name), steps)
        chains[chain.tier] = chain
    return chains


def _build_platform_classes(raw) -> dict:
    if not isinstance(raw, dict) or not raw:
        raise CatalogLoadError("platformClasses must be a non-empty mapping")
    return {str(k): str(v) for k, v in raw.items()}
