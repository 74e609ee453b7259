#!/usr/bin/env python3
"""
Export a tweets TSV file to CSV, newest tweets first.

**Conceptual**: Tweets are stored as TSV by the fetch tool (one tweet per
line, text escaped so tabs and line breaks survive). This script reads such a
file back through TsvSerializer, sorts the tweets newest first, and writes
them as a CSV that spreadsheets and pandas can open directly.

**Usage**:
    # Export the default file (settings: TSV_DATA_DIR / TSV_DEFAULT_FILE)
    python actions/export_tweets_to_csv.py

    # Export a specific file
    python actions/export_tweets_to_csv.py --input data/tweets.tsv --output out/tweets.csv

**Output**:
    - Columns: id, time, user, text (same names as the TSV header)
    - Default output path: input path with a .csv suffix

**Exit codes**:
    - 0: Success
    - 2: Input missing, settings invalid, the TSV could not be decoded or
         parsed, or a file could not be read or written
"""

import argparse
import sys
from pathlib import Path

# Add project root to Python path so we can import src modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.config.settings import get_settings
from src.data.errors import TsvError
from src.data.frames import records_to_frame
from src.data.io import TsvSerializer
from src.data.records import Tweet, sort_newest_first


def export_tweets_to_csv(
    input_path: Path,
    output_path: Path,
    encoding: str = "utf-8",
) -> int:
    """
    Read tweets from a TSV file and write them to CSV, newest first.

    Args:
        input_path: Tweets TSV file.
        output_path: CSV file to write (parent directory is created).
        encoding: Encoding of the TSV file.

    Returns:
        Number of tweets written.

    Raises:
        TsvError: If the TSV header or a cell does not match the Tweet record.
        UnicodeDecodeError: If the file is not valid text in ``encoding``.
        OSError: If a file cannot be read or written.
    """
    serializer = TsvSerializer(Tweet, input_path, encoding=encoding)
    tweets = sort_newest_first(serializer.deserialize())

    df = records_to_frame(tweets, Tweet)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=False)

    return len(df)


def main():
    """
    Main entry point for the export script.

    **Workflow**:
      1. Parse command-line arguments
      2. Load TSV settings from environment (defaults for path and encoding)
      3. Read, sort and export the tweets
      4. Print summary
    """
    parser = argparse.ArgumentParser(
        description="Export a tweets TSV file to CSV (newest first).",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--input",
        type=str,
        default=None,
        help="Tweets TSV file. Default: TSV_DATA_DIR/TSV_DEFAULT_FILE.",
    )

    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="CSV file to write. Default: input path with .csv suffix.",
    )

    parser.add_argument(
        "--encoding",
        type=str,
        default=None,
        help="Encoding of the TSV file. Default: TSV_ENCODING (utf-8).",
    )

    args = parser.parse_args()

    # Load settings
    try:
        settings = get_settings()
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(2)

    input_path = Path(args.input) if args.input else settings.tsv.default_path
    output_path = Path(args.output) if args.output else input_path.with_suffix(".csv")
    encoding = args.encoding or settings.tsv.encoding

    if not input_path.exists():
        print(f"ERROR: Input file not found: {input_path}")
        sys.exit(2)

    print("=" * 60)
    print("Tweets TSV -> CSV export")
    print("=" * 60)
    print(f"Input:    {input_path}")
    print(f"Output:   {output_path}")
    print(f"Encoding: {encoding}")
    print("=" * 60)

    try:
        count = export_tweets_to_csv(input_path, output_path, encoding=encoding)
    except (TsvError, LookupError, UnicodeDecodeError, OSError) as e:
        # OSError covers a locked input (BlockingIOError) and unwritable output
        print(f"ERROR: Export of {input_path} failed: {e}")
        sys.exit(2)

    print(f"✓ Wrote {count} tweets to {output_path}")


if __name__ == "__main__":
    main()
