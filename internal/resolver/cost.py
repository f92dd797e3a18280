"""Cost estimator: (platform class, scale) -> cost band.

The lookup itself is trivial; the work is in the load-time checks that make
it total and monotonic:

  - bands are ordered with ascending, non-overlapping bounds
  - every platform family used by a rule has a platform class
  - every class covers every scale with a known band
  - bands never decrease as scale grows within a class
  - across the whole profile space, raising scale or complianceTier with the
    other axes fixed never lowers the resolved band
"""

import itertools
import logging

from internal.models.errors import CatalogLoadError, NoMatchError
from internal.models.types import (
    AXES, AppType, ComplianceTier, CostBand, CriticalityTier, Phase,
    RecommendationBundle, Scale, WorkloadProfile,
)
from internal.resolver.matcher import match_rule

logger = logging.getLogger(__name__)


def estimate_cost(bundle: RecommendationBundle, scale: Scale, snapshot) -> CostBand:
    """Look up the cost band for a bundle at a given scale."""
    platform_class = snapshot.platform_classes[bundle.platform_family]
    band_name = snapshot.cost_matrix[platform_class][scale]
    return snapshot.band(band_name)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def build_bands(raw_bands) -> tuple:
    """Validate the ordered cost band list."""
    if not isinstance(raw_bands, list) or not raw_bands:
        raise CatalogLoadError("costBands must be a non-empty list")

    bands = []
    for i, raw in enumerate(raw_bands):
        if not isinstance(raw, dict) or "name" not in raw or "lower" not in raw:
            raise CatalogLoadError(f"costBands[{i}] needs name and lower", index=i)
        name = str(raw["name"])
        lower, upper = raw["lower"], raw.get("upper")
        if not _is_int(lower) or (upper is not None and not _is_int(upper)):
            raise CatalogLoadError(f"Cost band '{name}' bounds must be integers", band=name)
        justification = raw.get("justification", "")
        if not isinstance(justification, str):
            raise CatalogLoadError(f"Cost band '{name}' justification must be a string", band=name)
        band = CostBand(
            tier_name=name,
            lower_bound=lower,
            upper_bound=upper,
            justification=justification,
        )
        if upper is not None and upper < band.lower_bound:
            raise CatalogLoadError(f"Cost band '{band.tier_name}' has upper < lower",
                                   band=band.tier_name)
        if bands:
            prev = bands[-1]
            if prev.upper_bound is None or band.lower_bound < prev.upper_bound:
                raise CatalogLoadError(
                    f"Cost band '{band.tier_name}' overlaps or precedes '{prev.tier_name}'",
                    band=band.tier_name, previous=prev.tier_name,
                )
        bands.append(band)

    names = [b.tier_name for b in bands]
    if len(set(names)) != len(names):
        raise CatalogLoadError("Cost band names must be unique", bands=names)
    return tuple(bands)


def build_cost_matrix(raw_matrix, bands: tuple) -> dict:
    """Validate class -> scale -> band and return it keyed by Scale members."""
    if not isinstance(raw_matrix, dict) or not raw_matrix:
        raise CatalogLoadError("costMatrix must be a non-empty mapping")

    rank = {b.tier_name: i for i, b in enumerate(bands)}
    matrix = {}
    for platform_class, row in raw_matrix.items():
        if not isinstance(row, dict):
            raise CatalogLoadError(f"costMatrix entry for '{platform_class}' must be a mapping",
                                   platform_class=platform_class)
        unknown = set(row) - {s.value for s in Scale}
        if unknown:
            raise CatalogLoadError(
                f"costMatrix entry for '{platform_class}' has unknown scales: {sorted(map(str, unknown))}",
                platform_class=platform_class, allowed=[s.value for s in Scale],
            )
        missing = [s.value for s in Scale if s.value not in row]
        if missing:
            raise CatalogLoadError(
                f"costMatrix entry for '{platform_class}' does not cover scales {missing}",
                platform_class=platform_class, missing=missing,
            )

        cells = {}
        for scale in Scale:
            band_name = row[scale.value]
            if not isinstance(band_name, str):
                raise CatalogLoadError(
                    f"costMatrix entry for '{platform_class}' at {scale.value} must be a band name",
                    platform_class=platform_class, scale=scale.value,
                )
            if band_name not in rank:
                raise CatalogLoadError(
                    f"costMatrix entry for '{platform_class}' at {scale.value} "
                    f"references unknown band '{band_name}'",
                    platform_class=platform_class, scale=scale.value, band=band_name,
                )
            cells[scale] = band_name

        for lower, higher in zip(list(Scale), list(Scale)[1:]):
            if rank[cells[higher]] < rank[cells[lower]]:
                raise CatalogLoadError(
                    f"Cost band for '{platform_class}' decreases from {lower.value} to {higher.value}",
                    platform_class=platform_class, scale=higher.value,
                )
        matrix[str(platform_class)] = cells
    return matrix


def check_platform_coverage(rules, platform_classes: dict, cost_matrix: dict):
    """Every rule's platform family must map to a class present in the matrix."""
    for rule in rules:
        family = rule.bundle.platform_family
        if family not in platform_classes:
            raise CatalogLoadError(
                f"Rule '{rule.id}' uses platform family '{family}' with no platform class",
                rule_id=rule.id, platform_family=family,
            )
    for family, platform_class in platform_classes.items():
        if platform_class not in cost_matrix:
            raise CatalogLoadError(
                f"Platform class '{platform_class}' (for '{family}') is missing from costMatrix",
                platform_family=family, platform_class=platform_class,
            )


def _band_rank(profile: WorkloadProfile, snapshot, cache: dict):
    if profile not in cache:
        try:
            rule = match_rule(profile, snapshot).rule
        except NoMatchError:
            cache[profile] = None
        else:
            band = estimate_cost(rule.bundle, profile.scale, snapshot)
            cache[profile] = (snapshot.band_rank(band.tier_name), rule.id)
    return cache[profile]


def check_cost_monotonicity(snapshot):
    """Sweep the full profile space for band decreases along scale or complianceTier.

    For each fixed combination of the other axes the resolved profiles are
    walked in axis order and each is compared with the last one that
    resolved, so a catalog gap between two profiles does not hide a
    decrease. Unresolved profiles themselves are a resolve-time
    NoMatchError, not a load failure.
    """
    cache = {}
    space = {
        "phase": list(Phase),
        "app_type": list(AppType),
        "compliance_tier": list(ComplianceTier),
        "scale": list(Scale),
        "criticality_tier": [None] + list(CriticalityTier),
    }
    for attr in ("scale", "compliance_tier"):
        axis = next(a.name for a in AXES if a.attr == attr)
        others = [name for name in space if name != attr]
        for combo in itertools.product(*(space[name] for name in others)):
            fixed = dict(zip(others, combo))
            last = None
            for member in space[attr]:
                profile = WorkloadProfile(**fixed, **{attr: member})
                current = _band_rank(profile, snapshot, cache)
                if current is None:
                    continue
                if last is not None and current[0] < last[1][0]:
                    lower = last[0]
                    raise CatalogLoadError(
                        f"Cost band decreases when {axis} rises from "
                        f"{getattr(lower, attr).value} to {member.value} "
                        f"(rules '{last[1][1]}' -> '{current[1]}')",
                        axis=axis, profile=lower.to_dict(),
                        rule_ids=[last[1][1], current[1]],
                    )
                last = (profile, current)
    logger.debug("Cost monotonicity verified over %d profiles", len(cache))
