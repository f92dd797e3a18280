"""Error taxonomy for the resolver.

Four terminal error kinds, none retried internally:

  ValidationError      — malformed request axis value (request fails)
  NoMatchError         — no rule, or no failover tier entry, matches
  AmbiguousMatchError  — duplicate predicate sets in a catalog (load aborts)
  CatalogLoadError     — schema / enum / monotonicity violation (load aborts)

Each carries enough detail to reproduce the failure from ``to_dict()`` alone.
"""


class ResolutionError(Exception):
    """Base class for every error the engine reports."""
    code = "ResolutionError"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(ResolutionError):
    code = "ValidationError"

    def __init__(self, axis: str, value, allowed: list, message: str = None, errors: list = None):
        if message is None:
            message = f"{axis} must be one of {allowed} (got {value!r})"
        details = {"axis": axis, "value": value, "allowed": list(allowed)}
        if errors:
            details["errors"] = errors
        super().__init__(message, **details)


class NoMatchError(ResolutionError):
    code = "NoMatchError"

    def __init__(self, message: str, profile: dict = None, tier: str = None):
        details = {}
        if profile is not None:
            details["profile"] = profile
        if tier is not None:
            details["tier"] = tier
        super().__init__(message, **details)


class AmbiguousMatchError(ResolutionError):
    code = "AmbiguousMatchError"

    def __init__(self, conflicts: list):
        # conflicts: list of rule-id groups sharing one predicate set
        rule_ids = [rid for group in conflicts for rid in group]
        groups = "; ".join(", ".join(g) for g in conflicts)
        super().__init__(
            f"Rules share identical predicate sets: {groups}",
            rule_ids=rule_ids,
            conflicts=[list(g) for g in conflicts],
        )


class CatalogLoadError(ResolutionError):
    code = "CatalogLoadError"
