"""Resolution pipeline: profile -> matched rule -> failover chain -> cost band.

  1. Match      — highest-specificity rule, ties by (priority, position)
  2. Failover   — only when the profile carries a criticality tier
  3. Cost       — band for (platform class, scale)

Pure and synchronous. The caller picks the snapshot (normally
``get_catalog_store().current()``) and passes it in, so one request always
sees one catalog version.
"""

import logging

from internal.models.types import ResolvedPlan, WorkloadProfile
from internal.resolver.cost import estimate_cost
from internal.resolver.failover import plan_failover
from internal.resolver.matcher import match_rule

logger = logging.getLogger(__name__)


def resolve(profile: WorkloadProfile, snapshot) -> ResolvedPlan:
    """Resolve a profile into a single deployment plan.

    Raises:
        NoMatchError: no rule matches, or the profile's criticality tier has
            no failover chain. The engine never substitutes a default plan.
    """
    match = match_rule(profile, snapshot)
    bundle = match.rule.bundle

    chain = None
    if profile.criticality_tier is not None:
        chain = plan_failover(profile.criticality_tier, snapshot)

    band = estimate_cost(bundle, profile.scale, snapshot)

    plan = ResolvedPlan(
        bundle=bundle,
        matched_rule_id=match.rule.id,
        specificity=match.specificity,
        cost_band=band,
        failover_chain=chain,
        catalog_version=snapshot.version,
        tied_rule_ids=match.tied_rule_ids,
    )
    logger.debug("Resolved (%s) -> %s [rule=%s specificity=%d band=%s]",
                 profile.describe(), bundle.platform_family, match.rule.id,
                 match.specificity, band.tier_name)
    return plan
