"""Rule matching with specificity scoring and deterministic tie-breaking.

Flow:
  1. A predicate on axis A matches when it is ANY or equals profile[A].
  2. A rule matches when every predicate matches.
  3. Keep the matching rules with maximal specificity.
  4. Break remaining ties by (priority, declaration position): with no
     explicit priorities this is "first declared wins".

No I/O happens here; the snapshot is read, never modified.
"""

import logging
from dataclasses import dataclass

from internal.models.errors import NoMatchError
from internal.models.types import AXES, Rule, WorkloadProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleMatch:
    rule: Rule
    specificity: int
    tied_rule_ids: tuple  # equally specific matches that lost the tie-break


def failed_axes(rule: Rule, profile: WorkloadProfile) -> list:
    """Return the names of the axes on which ``rule`` rejects ``profile``."""
    return [
        axis.name
        for axis, predicate in zip(AXES, rule.predicates)
        if not predicate.matches(profile.value_of(axis))
    ]


def rule_matches(rule: Rule, profile: WorkloadProfile) -> bool:
    return all(
        predicate.matches(profile.value_of(axis))
        for axis, predicate in zip(AXES, rule.predicates)
    )


def match_rule(profile: WorkloadProfile, snapshot) -> RuleMatch:
    """Select the single winning rule for ``profile``.

    Raises:
        NoMatchError: if no rule in the snapshot matches the profile.
    """
    matching = [r for r in snapshot.rules if rule_matches(r, profile)]
    if not matching:
        raise NoMatchError(
            f"No rule matches profile ({profile.describe()})",
            profile=profile.to_dict(),
        )

    best = max(r.specificity for r in matching)
    finalists = sorted(
        (r for r in matching if r.specificity == best),
        key=lambda r: r.order_key,
    )
    winner = finalists[0]
    tied = tuple(r.id for r in finalists[1:])
    if tied:
        logger.debug("Tie at specificity %d for (%s): %s wins over %s",
                     best, profile.describe(), winner.id, ", ".join(tied))
    return RuleMatch(rule=winner, specificity=best, tied_rule_ids=tied)


def explain(profile: WorkloadProfile, snapshot) -> dict:
    """Evaluate every rule against ``profile`` and report why each did or did not win."""
    try:
        match = match_rule(profile, snapshot)
        winner_id = match.rule.id
    except NoMatchError:
        match = None
        winner_id = None

    evaluations = []
    for rule in snapshot.rules:
        failures = failed_axes(rule, profile)
        evaluations.append({
            "ruleId": rule.id,
            "position": rule.position,
            "priority": rule.priority,
            "specificity": rule.specificity,
            "matched": not failures,
            "failedAxes": failures,
            "selected": rule.id == winner_id,
        })

    return {
        "profile": profile.to_dict(),
        "catalogVersion": snapshot.version,
        "matchedRuleId": winner_id,
        "specificity": match.specificity if match else None,
        "tiedRuleIds": list(match.tied_rule_ids) if match else [],
        "rules": evaluations,
    }
