# cli/replay_trail.py
import argparse
import os

from dotenv import load_dotenv

from lambdas.trail_filter.app import TrailProcessor
from lambdas.trail_filter.log_setup import configure_logging
from lambdas.trail_filter.models import AppSettings, StorageLocation
from lambdas.trail_filter.record_parser import GZIP_CONTENT_TYPE, ParseError, parse_trail_object
from lambdas.trail_filter.rules import classify

# Load environment variables from a .env file for local testing
load_dotenv()


def replay_file(file_path: str, settings: AppSettings, bucket: str = "local") -> None:
    """
    Runs one CloudTrail file from disk through the same filter the Lambda uses.
    Prints one line per record with its verdict and rule; the JSON "Event"
    log entries are still written alongside.
    """
    content_type = GZIP_CONTENT_TYPE if file_path.endswith(".gz") else "application/json"
    print(f"--- Replaying: {file_path} ---")
    try:
        with open(file_path, "rb") as f:
            records = parse_trail_object(f, content_type)
    except FileNotFoundError:
        print(f"❌ ERROR: File not found at path: {file_path}")
        return
    except OSError as e:
        print(f"❌ ERROR: Could not read {file_path}: {e}")
        return
    except ParseError as e:
        print(f"❌ ERROR: Could not parse {file_path}: {e}")
        return

    if not records:
        print("⚠️ Warning: File has no records. Skipping.")
        return

    for record in records:
        classification = classify(record)
        print(f"  {classification.verdict.value:<8} {classification.rule:<40} "
              f"{record.event_name or '-'} ({record.event_id or '-'})")

    location = StorageLocation(bucket=bucket, key=os.path.basename(file_path))
    summary = TrailProcessor(settings).filter_records(records, location)
    print(f"✅ {summary.records} records: {summary.notified} notify, {summary.suppressed} suppressed"
          f"{f', {summary.delivery_failures} failed deliveries' if summary.delivery_failures else ''}.")


if __name__ == "__main__":
    # --- Set up the command-line argument parser ---
    parser = argparse.ArgumentParser(
        description="Replays local CloudTrail log files through the alert filter."
    )
    parser.add_argument(
        'trail_files',
        metavar='FILE',
        type=str,
        nargs='+',
        help='One or more CloudTrail .json or .json.gz files.'
    )
    parser.add_argument('--notify', action='store_true', help='Actually post notify-worthy events to SLACK_WEBHOOK.')
    parser.add_argument('--bucket', default='local', help='Bucket name to show in s3_uri fields.')
    parser.add_argument('--verbose', action='store_true', help='Log at DEBUG level.')

    args = parser.parse_args()

    settings = AppSettings.from_env()
    if not args.notify:
        settings.webhook_url = None
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    for file_path in args.trail_files:
        replay_file(file_path, settings, bucket=args.bucket)
