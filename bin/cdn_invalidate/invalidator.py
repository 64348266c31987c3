import json
import logging
import secrets
import string
from typing import Any, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from cdn_invalidate.errors import InvalidationError

logger = logging.getLogger(__name__)

CALLER_REFERENCE_ALPHABET = string.ascii_letters + string.digits
CALLER_REFERENCE_LENGTH = 16


def generate_caller_reference(length: int = CALLER_REFERENCE_LENGTH) -> str:
    """Random alphanumeric caller reference. Collisions are possible but unlikely."""
    return "".join(secrets.choice(CALLER_REFERENCE_ALPHABET) for _ in range(length))


def build_invalidation_batch(paths: Sequence[str], caller_reference: str) -> dict:
    items: List[str] = list(paths)
    return {
        "Paths": {
            "Quantity": len(items),
            "Items": items,
        },
        "CallerReference": caller_reference,
    }


def _describe_error(error: Exception) -> str:
    if isinstance(error, ClientError):
        return json.dumps(error.response.get("Error", {}), default=str)
    return json.dumps({"Message": str(error)})


def create_cloudfront_invalidation(
    cloudfront_client: Any, distribution_id: str, paths: Sequence[str], caller_reference: Optional[str] = None
) -> str:
    """Create a CloudFront invalidation for the specified distribution and paths.

    The request is submitted once. Acceptance means CloudFront has queued the
    invalidation, not that the cache has been purged.

    Args:
        cloudfront_client: boto3 CloudFront client
        distribution_id: The CloudFront distribution ID
        paths: Paths to invalidate, sent in the order given (e.g., ["/*"] for all content)
        caller_reference: Optional caller reference; a random one is generated if omitted

    Returns:
        The invalidation ID

    Raises:
        InvalidationError: If CloudFront rejects the request
    """
    if not caller_reference:
        caller_reference = generate_caller_reference()

    try:
        response = cloudfront_client.create_invalidation(
            DistributionId=distribution_id,
            InvalidationBatch=build_invalidation_batch(paths, caller_reference),
        )
    except (ClientError, BotoCoreError) as e:
        print(_describe_error(e))
        print("CloudfrontInvalidation: Invalidation failed")
        logger.error(f"Failed to create CloudFront invalidation for {distribution_id}: {e}")
        raise InvalidationError(f"Invalidation of {distribution_id} failed: {e}") from e

    print("CloudfrontInvalidation: Invalidation started")
    invalidation_id = response["Invalidation"]["Id"]
    logger.debug(f"Invalidation {invalidation_id} created for {distribution_id} (reference {caller_reference})")
    return invalidation_id
