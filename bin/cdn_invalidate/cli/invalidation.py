from typing import Sequence

import click

from cdn_invalidate.cli import cli
from cdn_invalidate.env import Config
from cdn_invalidate.errors import ConfigurationError, ResolutionError
from cdn_invalidate.orchestrator import InvalidationOutcome, OutcomeStatus, run_invalidations, summarise


def _report(outcomes: Sequence[InvalidationOutcome]) -> None:
    counts = summarise(outcomes)
    print(
        f"CloudfrontInvalidation: {counts[OutcomeStatus.INVALIDATED]} started, "
        f"{counts[OutcomeStatus.SKIPPED]} skipped, {counts[OutcomeStatus.FAILED]} failed"
    )
    # targets abandoned for configuration or lookup problems are reported but do not fail the run
    rejected = [
        o.target.label
        for o in outcomes
        if o.status == OutcomeStatus.FAILED and not isinstance(o.error, (ConfigurationError, ResolutionError))
    ]
    if rejected:
        failed = ", ".join(rejected)
        raise click.ClickException(f"Invalidation failed for: {failed}")


@cli.command(name="invalidate")
@click.pass_obj
def invalidate_now(cfg: Config):
    """Invalidate every configured distribution for the current stage."""
    outcomes = run_invalidations(cfg.targets, cfg.stage, cfg.stack_name, cfg.transport, auto_hook=False, skip=cfg.skip)
    _report(outcomes)


@cli.command(name="after-deploy")
@click.pass_obj
def invalidate_after_deploy(cfg: Config):
    """Post-deploy hook: like invalidate, but honours autoInvalidate: false."""
    outcomes = run_invalidations(cfg.targets, cfg.stage, cfg.stack_name, cfg.transport, auto_hook=True, skip=cfg.skip)
    _report(outcomes)
