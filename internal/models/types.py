"""Data types for the deployment strategy resolver.

A workload is described along five fixed axes. Each axis is a closed
enumeration; the declaration order of the members is the "increasing"
direction used when the catalog loader checks cost monotonicity.

  phase            — maturity of the product (mvp → enterprise)
  appType          — kind of application being deployed
  complianceTier   — regulatory pressure (standard → high)
  scale            — traffic / data volume (small → xlarge)
  criticalityTier  — optional; drives the failover chain

Everything in this module is immutable once constructed.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Optional, Union

from internal.models.errors import ValidationError


class Phase(str, Enum):
    MVP_PROTOTYPE = "mvp_prototype"
    GROWTH_PHASE = "growth_phase"
    ENTERPRISE_PHASE = "enterprise_phase"


class AppType(str, Enum):
    STATIC_SITES = "static_sites"
    WEB_APPLICATIONS = "web_applications"
    API_SERVICES = "api_services"
    MICROSERVICES = "microservices"
    DATA_PIPELINES = "data_pipelines"
    ML_WORKLOADS = "ml_workloads"


class ComplianceTier(str, Enum):
    STANDARD = "standard"
    MODERATE_COMPLIANCE = "moderate_compliance"
    HIGH_COMPLIANCE = "high_compliance"


class Scale(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    XLARGE = "xlarge"


class CriticalityTier(str, Enum):
    NON_CRITICAL = "non_critical"
    BUSINESS_OPERATIONAL = "business_operational"
    BUSINESS_CRITICAL = "business_critical"
    MISSION_CRITICAL = "mission_critical"


@dataclass(frozen=True)
class Axis:
    """One dimension of the fact model."""
    name: str        # external (camelCase) key
    attr: str        # WorkloadProfile attribute
    enum: type
    optional: bool = False

    def allowed(self) -> list:
        return [m.value for m in self.enum]

    def parse(self, raw):
        """Return the enum member for ``raw`` or raise ValidationError."""
        if isinstance(raw, self.enum):
            return raw
        try:
            return self.enum(raw)
        except ValueError:
            raise ValidationError(self.name, raw, self.allowed()) from None


# Fixed axis order. Rule predicates are stored as tuples in this order.
AXES = (
    Axis("phase", "phase", Phase),
    Axis("appType", "app_type", AppType),
    Axis("complianceTier", "compliance_tier", ComplianceTier),
    Axis("scale", "scale", Scale),
    Axis("criticalityTier", "criticality_tier", CriticalityTier, optional=True),
)

AXES_BY_NAME = {a.name: a for a in AXES}
_ALIASES = {a.attr: a.name for a in AXES}


# ── Fact Model ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WorkloadProfile:
    """Validated description of a workload.

    Build it from untrusted input with ``WorkloadProfile.from_dict``; the
    constructor itself assumes enum members.
    """
    phase: Phase
    app_type: AppType
    compliance_tier: ComplianceTier
    scale: Scale
    criticality_tier: Optional[CriticalityTier] = None

    @classmethod
    def from_dict(cls, raw) -> "WorkloadProfile":
        """Validate raw request data and build a profile.

        Accepts camelCase keys (``appType``) and their snake_case aliases
        (``app_type``). Every invalid axis is reported; the first one is the
        primary ``axis`` of the raised ValidationError.
        """
        if not isinstance(raw, dict):
            raise ValidationError("profile", raw, [a.name for a in AXES],
                                  message="profile must be a JSON object")

        data = {}
        for key, value in raw.items():
            data[_ALIASES.get(key, key)] = value

        values = {}
        errors = []
        for axis in AXES:
            raw_value = data.get(axis.name)
            if raw_value is None:
                if axis.optional:
                    values[axis.attr] = None
                    continue
                errors.append(ValidationError(axis.name, None, axis.allowed(),
                                              message=f"{axis.name} is required"))
                continue
            try:
                values[axis.attr] = axis.parse(raw_value)
            except ValidationError as exc:
                errors.append(exc)

        if errors:
            first = errors[0]
            raise ValidationError(
                first.details["axis"],
                first.details["value"],
                first.details["allowed"],
                message=first.message,
                errors=[e.details for e in errors],
            )
        return cls(**values)

    def value_of(self, axis: Axis):
        return getattr(self, axis.attr)

    def to_dict(self) -> dict:
        out = {}
        for axis in AXES:
            member = self.value_of(axis)
            out[axis.name] = member.value if member is not None else None
        return out

    def describe(self) -> str:
        return ", ".join(f"{k}={v}" for k, v in self.to_dict().items() if v is not None)


# ── Predicates ───────────────────────────────────────────────────────────────

WILDCARD_TOKEN = "ANY"


@dataclass(frozen=True)
class Concrete:
    """Predicate that matches exactly one enum value."""
    value: Enum

    def matches(self, actual) -> bool:
        return actual == self.value

    def to_token(self) -> str:
        return self.value.value


@dataclass(frozen=True)
class Wildcard:
    """Predicate that matches any value, including an absent optional axis."""

    def matches(self, actual) -> bool:
        return True

    def to_token(self) -> str:
        return WILDCARD_TOKEN


WILDCARD = Wildcard()
Predicate = Union[Concrete, Wildcard]


# ── Catalog records ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RecommendationBundle:
    platform_family: str
    container_base: str
    infra_tooling: str
    security_controls: frozenset
    rationale: str = ""


@dataclass(frozen=True)
class Rule:
    """A declarative rule: one predicate per axis plus a recommendation."""
    id: str
    predicates: tuple  # one Predicate per entry of AXES
    bundle: RecommendationBundle
    priority: int
    position: int      # declaration index within the catalog

    @property
    def specificity(self) -> int:
        return sum(1 for p in self.predicates if not isinstance(p, Wildcard))

    @property
    def order_key(self) -> tuple:
        return (self.priority, self.position)

    def predicate_map(self) -> dict:
        return {axis.name: p.to_token() for axis, p in zip(AXES, self.predicates)}


@dataclass(frozen=True)
class FailoverStep:
    strategy_name: str
    rto: timedelta
    rpo: timedelta

    def to_dict(self) -> dict:
        return {
            "strategyName": self.strategy_name,
            "rtoSeconds": int(self.rto.total_seconds()),
            "rpoSeconds": int(self.rpo.total_seconds()),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FailoverStep":
        return cls(
            strategy_name=data["strategyName"],
            rto=timedelta(seconds=data["rtoSeconds"]),
            rpo=timedelta(seconds=data["rpoSeconds"]),
        )


@dataclass(frozen=True)
class FailoverChain:
    """Primary, secondary and tertiary recovery strategies for a tier."""
    tier: CriticalityTier
    steps: tuple  # exactly three FailoverStep

    @property
    def primary(self) -> FailoverStep:
        return self.steps[0]

    @property
    def secondary(self) -> FailoverStep:
        return self.steps[1]

    @property
    def tertiary(self) -> FailoverStep:
        return self.steps[2]

    def to_dict(self) -> dict:
        return {
            "tier": self.tier.value,
            "steps": [s.to_dict() for s in self.steps],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FailoverChain":
        return cls(
            tier=CriticalityTier(data["tier"]),
            steps=tuple(FailoverStep.from_dict(s) for s in data["steps"]),
        )


@dataclass(frozen=True)
class CostBand:
    """Named monthly price range (USD). ``upper_bound`` None means open-ended."""
    tier_name: str
    lower_bound: int
    upper_bound: Optional[int]
    justification: str = ""

    def to_dict(self) -> dict:
        return {
            "tierName": self.tier_name,
            "lowerBound": self.lower_bound,
            "upperBound": self.upper_bound,
            "justification": self.justification,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CostBand":
        return cls(
            tier_name=data["tierName"],
            lower_bound=data["lowerBound"],
            upper_bound=data.get("upperBound"),
            justification=data.get("justification", ""),
        )


# ── Result ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ResolvedPlan:
    """Result of resolving a WorkloadProfile against a catalog snapshot.

    ``matched_rule_id`` and ``specificity`` make every decision auditable;
    ``catalog_version`` ties the plan to the snapshot that produced it.
    """
    bundle: RecommendationBundle
    matched_rule_id: str
    specificity: int
    cost_band: CostBand
    failover_chain: Optional[FailoverChain] = None
    catalog_version: str = ""
    tied_rule_ids: tuple = field(default=())

    def to_dict(self) -> dict:
        return {
            "platformFamily": self.bundle.platform_family,
            "containerBase": self.bundle.container_base,
            "infraTooling": self.bundle.infra_tooling,
            "securityControls": sorted(self.bundle.security_controls),
            "costBand": self.cost_band.to_dict(),
            "failoverChain": self.failover_chain.to_dict() if self.failover_chain else None,
            "matchedRuleId": self.matched_rule_id,
            "specificity": self.specificity,
            "tiedRuleIds": list(self.tied_rule_ids),
            "rationale": self.bundle.rationale,
            "catalogVersion": self.catalog_version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ResolvedPlan":
        chain = data.get("failoverChain")
        return cls(
            bundle=RecommendationBundle(
                platform_family=data["platformFamily"],
                container_base=data["containerBase"],
                infra_tooling=data["infraTooling"],
                security_controls=frozenset(data["securityControls"]),
                rationale=data.get("rationale", ""),
            ),
            matched_rule_id=data["matchedRuleId"],
            specificity=data["specificity"],
            cost_band=CostBand.from_dict(data["costBand"]),
            failover_chain=FailoverChain.from_dict(chain) if chain else None,
            catalog_version=data.get("catalogVersion", ""),
            tied_rule_ids=tuple(data.get("tiedRuleIds", ())),
        )
