"""Looks up CloudFront distribution ids in CloudFormation stack outputs."""

from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from cdn_invalidate.errors import ConfigurationError, ResolutionError
from cdn_invalidate.settings import InvalidationTarget

logger = logging.getLogger(__name__)

RESOLUTION_FAILED_MESSAGE = (
    "Failed to get DistributionId from stack output. Please check your serverless template."
)


def get_stack_outputs(cloudformation_client: Any, stack_name: str) -> dict[str, str]:
    """Return the outputs of stack_name as a dict of OutputKey to OutputValue."""
    try:
        response = cloudformation_client.describe_stacks(StackName=stack_name)
    except (ClientError, BotoCoreError) as e:
        raise ResolutionError(f"Unable to describe stack {stack_name}: {e}") from e

    stacks = response.get("Stacks") or []
    if not stacks:
        raise ResolutionError(f"Stack {stack_name} not found")

    return {output["OutputKey"]: output["OutputValue"] for output in stacks[0].get("Outputs", [])}


def resolve_distribution_id(target: InvalidationTarget, stack_name: str, cloudformation_client: Any) -> str:
    """Find the distribution id for a target that only names a stack output.

    Args:
        target: The target; its distributionIdKey names the stack output to use
        stack_name: The deployed CloudFormation stack
        cloudformation_client: boto3 CloudFormation client

    Returns:
        The value of the matching stack output

    Raises:
        ConfigurationError: If the target has no distributionIdKey
        ResolutionError: If the stack can't be read or has no matching output
    """
    key = target.distribution_id_key
    if not key:
        print("distributionId or distributionIdKey is required")
        raise ConfigurationError("distributionId or distributionIdKey is required")

    print(f"DistributionIdKey: {key}")

    try:
        outputs = get_stack_outputs(cloudformation_client, stack_name)
        if key not in outputs:
            raise ResolutionError(f"Stack {stack_name} has no output named {key}")
    except ResolutionError as e:
        print(RESOLUTION_FAILED_MESSAGE)
        logger.error("Could not resolve %s: %s", key, e)
        raise

    distribution_id = outputs[key]
    logger.debug("Resolved %s to %s via stack %s", key, distribution_id, stack_name)
    return distribution_id
