# lambdas/trail_filter/s3_source.py
import logging
from typing import Any, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from .models import TrailFilterError

logger = logging.getLogger(__name__)

# CloudTrail digests and AWS Config snapshots land in the same bucket but
# never describe real API activity.
META_KEY_MARKERS = ("/CloudTrail-Digest/", "/Config/")


class FetchError(TrailFilterError):
    """The log object could not be read from S3."""
    pass


def is_meta_key(key: str) -> bool:
    """True for digest and config-snapshot keys, which are never fetched."""
    return any(marker in key for marker in META_KEY_MARKERS)


def fetch_trail_object(s3_client, bucket: str, key: str) -> Tuple[str, Any]:
    """
    Downloads a log object from S3.

    Returns:
        A (content_type, body) tuple. The body is the unread StreamingBody; the
        parser is responsible for closing it.

    Raises:
        FetchError: If S3 denies, cannot find, or fails to serve the object.
    """
    logger.debug(f"Reading {key} from {bucket}")
    try:
        response = s3_client.get_object(Bucket=bucket, Key=key)
    except ClientError as e:
        raise FetchError(f"AWS Error: {e.response.get('Error', {}).get('Code', 'Unknown')}: {e}") from e
    except BotoCoreError as e:
        raise FetchError(f"Error getting S3 Object: {e}") from e

    return response.get("ContentType") or "", response["Body"]
