# lambdas/trail_filter/record_parser.py
import gzip
import json
import zlib
from typing import Any, List

from botocore.exceptions import BotoCoreError

from .models import AuditRecord, TrailFilterError

GZIP_CONTENT_TYPE = "application/x-gzip"


class ParseError(TrailFilterError):
    """The log object could not be decoded into CloudTrail records."""
    pass


def _read_body(body: Any) -> bytes:
    """Accepts raw bytes or a file-like stream (e.g. botocore StreamingBody)."""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    try:
        return body.read()
    finally:
        close = getattr(body, "close", None)
        if close:
            close()


def parse_trail_object(body: Any, content_type: str = None) -> List[AuditRecord]:
    """
    Decodes one CloudTrail log object into its records.

    Args:
        body: The object bytes, or a readable stream that is closed afterwards.
        content_type: The object's Content-Type; gzip objects are decompressed.

    Returns:
        The records in file order. A file without "Records" yields an empty list.

    Raises:
        ParseError: If the object cannot be read, decompressed or decoded. The
            whole object fails; no partial list is returned.
    """
    try:
        raw = _read_body(body)
        if content_type == GZIP_CONTENT_TYPE:
            raw = gzip.decompress(raw)
        # json.loads detects utf-8/16/32 from the bytes themselves.
        log_file = json.loads(raw)
    except BotoCoreError as e:
        # A truncated StreamingBody raises IncompleteReadError.
        raise ParseError(f"reading log file body: {e}") from e
    except (OSError, EOFError, zlib.error) as e:
        raise ParseError(f"extracting json.gz file: {e}") from e
    except ValueError as e:
        # Covers both json.JSONDecodeError and UnicodeDecodeError.
        raise ParseError(f"unmarshalling s3 object to CloudTrail file: {e}") from e

    if not isinstance(log_file, dict):
        raise ParseError(f"unmarshalling s3 object to CloudTrail file: expected an object, got {type(log_file).__name__}")

    records = log_file.get("Records")
    if records is None:
        return []
    if not isinstance(records, list):
        raise ParseError(f"unmarshalling s3 object to CloudTrail file: 'Records' is {type(records).__name__}, not a list")

    for i, record in enumerate(records):
        if not isinstance(record, dict):
            raise ParseError(f"unmarshalling s3 object to CloudTrail file: record #{i} is {type(record).__name__}, not an object")

    return [AuditRecord(record) for record in records]
