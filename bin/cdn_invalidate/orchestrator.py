"""Decides which targets to invalidate and runs them concurrently."""

from __future__ import annotations

import logging
from collections import Counter
from concurrent import futures
from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from cdn_invalidate.amazon import AwsTransport
from cdn_invalidate.errors import InvalidationHookError
from cdn_invalidate.invalidator import create_cloudfront_invalidation
from cdn_invalidate.resolver import resolve_distribution_id
from cdn_invalidate.settings import InvalidationTarget

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    INVALIDATED = "invalidated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class InvalidationOutcome:
    target: InvalidationTarget
    status: OutcomeStatus
    reason: str = ""
    distribution_id: str | None = None
    invalidation_id: str | None = None
    error: Exception | None = None


def skip_reason(target: InvalidationTarget, stage: str, auto_hook: bool) -> str | None:
    """Why target should not be processed in this run, or None if it should."""
    if auto_hook and not target.auto_invalidate:
        return "autoInvalidate is set to false"
    if target.stage is not None and target.stage != stage:
        return f"target stage {target.stage} does not match {stage}"
    return None


def should_process(target: InvalidationTarget, stage: str, auto_hook: bool) -> bool:
    return skip_reason(target, stage, auto_hook) is None


def invalidate_target(
    target: InvalidationTarget, stack_name: str, cloudformation_client: Any, cloudfront_client: Any
) -> InvalidationOutcome:
    """Resolve the distribution id if needed, then invalidate target's items on it."""
    distribution_id = target.distribution_id
    try:
        if distribution_id:
            print(f"DistributionId: {distribution_id}")
        else:
            distribution_id = resolve_distribution_id(target, stack_name, cloudformation_client)
        invalidation_id = create_cloudfront_invalidation(cloudfront_client, distribution_id, target.items)
    except InvalidationHookError as e:
        logger.error("Abandoning invalidation for %s: %s", target.label, e)
        return InvalidationOutcome(
            target, OutcomeStatus.FAILED, reason=str(e), distribution_id=distribution_id, error=e
        )

    return InvalidationOutcome(
        target,
        OutcomeStatus.INVALIDATED,
        reason="invalidation started",
        distribution_id=distribution_id,
        invalidation_id=invalidation_id,
    )


def run_invalidations(
    targets: Sequence[InvalidationTarget],
    stage: str,
    stack_name: str,
    transport: AwsTransport,
    auto_hook: bool = False,
    skip: bool = False,
) -> list[InvalidationOutcome]:
    """Invalidate every eligible target and wait for all of them to settle.

    Args:
        targets: Configured invalidation targets
        stage: The stage being deployed
        stack_name: CloudFormation stack holding the distribution id outputs
        transport: Where the AWS clients come from
        auto_hook: True when running as the post-deploy hook, which honours autoInvalidate
        skip: Skip everything without touching AWS

    Returns:
        One outcome per target, in the same order as targets
    """
    if skip:
        print("skipping invalidation due to noDeploy option")
        return [InvalidationOutcome(target, OutcomeStatus.SKIPPED, reason="noDeploy option set") for target in targets]

    outcomes: list[InvalidationOutcome | None] = [None] * len(targets)
    pending: list[int] = []
    for index, target in enumerate(targets):
        reason = skip_reason(target, stage, auto_hook)
        if reason is None:
            pending.append(index)
            continue
        if auto_hook and not target.auto_invalidate:
            print(
                f'Will skip invalidation for the distributionId "{target.label}" as autoInvalidate is set to false.'
            )
        logger.debug("Skipping %s: %s", target.label, reason)
        outcomes[index] = InvalidationOutcome(target, OutcomeStatus.SKIPPED, reason=reason)

    if pending:
        # clients are created here, once, and shared read-only by the workers
        cloudformation_client = transport.cloudformation_client()
        cloudfront_client = transport.cloudfront_client()

        with futures.ThreadPoolExecutor(max_workers=len(pending)) as executor:
            future_to_index = {
                executor.submit(
                    invalidate_target, targets[index], stack_name, cloudformation_client, cloudfront_client
                ): index
                for index in pending
            }
            for future in futures.as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    outcomes[index] = future.result()
                except Exception as e:
                    logger.exception("Unexpected error invalidating %s", targets[index].label)
                    outcomes[index] = InvalidationOutcome(
                        targets[index], OutcomeStatus.FAILED, reason=str(e), error=e
                    )

    return [outcome for outcome in outcomes if outcome is not None]


def summarise(outcomes: Sequence[InvalidationOutcome]) -> Counter:
    return Counter(outcome.status for outcome in outcomes)
