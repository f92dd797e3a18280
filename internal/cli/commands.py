"""resolvectl: command-line surface for the deployment strategy resolver.

  resolvectl resolve --phase mvp_prototype --app-type static_sites ...
  resolvectl explain --phase enterprise_phase --compliance-tier high_compliance ...
  resolvectl validate config/catalog.yaml

Exit codes: 0 ok, 2 ValidationError, 3 NoMatchError, 4 AmbiguousMatchError,
5 CatalogLoadError.
"""

import json
import logging
import os

import click

from internal.catalog.loader import load_catalog_file
from internal.catalog.store import CatalogStore
from internal.models.errors import (
    AmbiguousMatchError, CatalogLoadError, NoMatchError, ResolutionError, ValidationError,
)
from internal.models.types import (
    AppType, ComplianceTier, CriticalityTier, Phase, Scale, WorkloadProfile,
)
from internal.resolver.engine import resolve
from internal.resolver.matcher import explain

EXIT_CODES = {
    ValidationError: 2,
    NoMatchError: 3,
    AmbiguousMatchError: 4,
    CatalogLoadError: 5,
}


def _choices(enum) -> click.Choice:
    return click.Choice([m.value for m in enum])


def _profile_options(f):
    options = [
        click.option("--phase", required=True, type=_choices(Phase)),
        click.option("--app-type", "app_type", required=True, type=_choices(AppType)),
        click.option("--compliance-tier", "compliance_tier", default=ComplianceTier.STANDARD.value,
                     show_default=True, type=_choices(ComplianceTier)),
        click.option("--scale", default=Scale.SMALL.value, show_default=True, type=_choices(Scale)),
        click.option("--criticality-tier", "criticality_tier", default=None,
                     type=_choices(CriticalityTier), help="Omit for no failover chain."),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _fail(exc: ResolutionError):
    click.echo(json.dumps(exc.to_dict(), indent=2, default=str), err=True)
    raise SystemExit(EXIT_CODES.get(type(exc), 1))


def _load(catalog_path):
    try:
        return CatalogStore(catalog_path).current()
    except ResolutionError as exc:
        _fail(exc)


@click.group()
@click.option("-c", "--catalog", "catalog_path", default=None,
              help="Catalog YAML (default: $IDP_CATALOG_PATH or config/catalog.yaml).")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging to stderr.")
@click.pass_context
def cli(ctx: click.Context, catalog_path, verbose: bool) -> None:
    """Resolve workload profiles into deployment plans."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else os.getenv("LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["catalog_path"] = catalog_path


@cli.command("resolve")
@_profile_options
@click.option("--json", "json_output", is_flag=True, help="Print the full plan as JSON.")
@click.pass_obj
def resolve_cmd(obj: dict, json_output: bool, **axes) -> None:
    """Resolve one workload profile."""
    snapshot = _load(obj["catalog_path"])
    try:
        plan = resolve(WorkloadProfile.from_dict(axes), snapshot)
    except ResolutionError as exc:
        _fail(exc)

    data = plan.to_dict()
    if json_output:
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"platform:   {data['platformFamily']}")
    click.echo(f"container:  {data['containerBase']}")
    click.echo(f"tooling:    {data['infraTooling']}")
    click.echo(f"security:   {', '.join(data['securityControls'])}")
    band = data["costBand"]
    upper = band["upperBound"] if band["upperBound"] is not None else "+"
    click.echo(f"cost band:  {band['tierName']} (${band['lowerBound']}-{upper}/month)")
    if plan.failover_chain:
        for label, step in zip(("primary", "secondary", "tertiary"), plan.failover_chain.steps):
            click.echo(f"{label + ':':<11} {step.strategy_name} (rto {step.rto}, rpo {step.rpo})")
    click.echo(f"rule:       {data['matchedRuleId']} (specificity {data['specificity']}, "
               f"catalog {data['catalogVersion']})")


@cli.command("explain")
@_profile_options
@click.pass_obj
def explain_cmd(obj: dict, **axes) -> None:
    """Show how every rule evaluates against a profile."""
    snapshot = _load(obj["catalog_path"])
    try:
        profile = WorkloadProfile.from_dict(axes)
    except ResolutionError as exc:
        _fail(exc)
    click.echo(json.dumps(explain(profile, snapshot), indent=2))


@cli.command("validate")
@click.argument("catalog", type=click.Path(exists=True, dir_okay=False))
def validate_cmd(catalog: str) -> None:
    """Load a catalog with every consistency check and report the result."""
    try:
        snapshot = load_catalog_file(catalog)
    except ResolutionError as exc:
        _fail(exc)
    click.echo(f"OK {catalog}: version {snapshot.version}, {len(snapshot.rules)} rules, "
               f"{len(snapshot.failover)} failover tiers, {len(snapshot.cost_bands)} cost bands")
