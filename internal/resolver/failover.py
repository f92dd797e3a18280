"""Failover planner: criticality tier -> primary/secondary/tertiary chain.

Recovery objectives must loosen, never tighten, down the chain:

  primary.rto <= secondary.rto <= tertiary.rto
  primary.rpo <= secondary.rpo <= tertiary.rpo

The table is checked when the catalog is loaded (``build_chain``), so a
request never discovers a broken chain.
"""

import re
from datetime import timedelta

from internal.models.errors import CatalogLoadError, NoMatchError
from internal.models.types import CriticalityTier, FailoverChain, FailoverStep

CHAIN_LENGTH = 3
STEP_NAMES = ("primary", "secondary", "tertiary")

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd])\s*$")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(raw) -> timedelta:
    """Parse ``30s``, ``15m``, ``4h``, ``1d`` or a plain integer of seconds."""
    if isinstance(raw, bool):
        raise ValueError(f"invalid duration: {raw!r}")
    if isinstance(raw, int):
        if raw < 0:
            raise ValueError(f"duration must not be negative: {raw}")
        return timedelta(seconds=raw)
    if isinstance(raw, str):
        m = _DURATION_RE.match(raw)
        if m:
            return timedelta(seconds=int(m.group(1)) * _UNIT_SECONDS[m.group(2)])
    raise ValueError(f"invalid duration: {raw!r} (expected e.g. 30s, 15m, 4h, 1d)")


def build_chain(tier_name: str, raw_steps) -> FailoverChain:
    """Validate one tier entry of the failover table and build its chain.

    Raises:
        CatalogLoadError: unknown tier, wrong step count, bad durations,
            or recovery objectives that tighten down the chain.
    """
    try:
        tier = CriticalityTier(tier_name)
    except ValueError:
        raise CatalogLoadError(
            f"Unknown criticality tier in failover table: {tier_name!r}",
            tier=tier_name,
            allowed=[t.value for t in CriticalityTier],
        ) from None

    if not isinstance(raw_steps, list) or len(raw_steps) != CHAIN_LENGTH:
        raise CatalogLoadError(
            f"Failover chain for tier '{tier_name}' must have exactly {CHAIN_LENGTH} entries",
            tier=tier_name,
        )

    steps = []
    for name, raw in zip(STEP_NAMES, raw_steps):
        if not isinstance(raw, dict) or "strategy" not in raw:
            raise CatalogLoadError(
                f"Failover {name} step for tier '{tier_name}' needs strategy, rto and rpo",
                tier=tier_name, step=name,
            )
        try:
            rto = parse_duration(raw.get("rto"))
            rpo = parse_duration(raw.get("rpo"))
        except ValueError as exc:
            raise CatalogLoadError(
                f"Failover {name} step for tier '{tier_name}': {exc}",
                tier=tier_name, step=name,
            ) from None
        steps.append(FailoverStep(strategy_name=str(raw["strategy"]), rto=rto, rpo=rpo))

    for objective in ("rto", "rpo"):
        for (prev_name, prev), (name, step) in zip(
            zip(STEP_NAMES, steps), zip(STEP_NAMES[1:], steps[1:])
        ):
            if getattr(step, objective) < getattr(prev, objective):
                raise CatalogLoadError(
                    f"Failover chain for tier '{tier_name}' tightens {objective}: "
                    f"{name} ({getattr(step, objective)}) < {prev_name} ({getattr(prev, objective)})",
                    tier=tier_name, objective=objective, step=name,
                )

    return FailoverChain(tier=tier, steps=tuple(steps))


def plan_failover(tier: CriticalityTier, snapshot) -> FailoverChain:
    """Return the failover chain for ``tier``.

    Raises:
        NoMatchError: if the catalog has no entry for the tier.
    """
    chain = snapshot.failover.get(tier)
    if chain is None:
        raise NoMatchError(
            f"No failover chain defined for criticality tier '{tier.value}'",
            tier=tier.value,
        )
    return chain
