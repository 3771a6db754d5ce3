"""Rebuild transcript embeddings for one or more courses from the command line."""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.ingestion.errors import IngestionError
from src.ingestion.reindex import reindex_course


def main(course_ids: list[int], verbose: bool = False) -> int:
    """Reindex each course and print a summary. Returns a process exit code."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    failed = 0
    for course_id in course_ids:
        try:
            summary = reindex_course(course_id)
        except IngestionError as e:
            failed += 1
            print(f"  course {course_id}: ERROR {e}")
            continue

        print(
            f"  course {course_id}: {summary.lessons_processed} lessons processed, "
            f"{summary.lessons_skipped} skipped, {summary.embeddings_created} embeddings"
        )
        for error in summary.errors:
            print(f"    - {error}")
        if summary.errors:
            failed += 1

    print(f"\nDone! {len(course_ids) - failed}/{len(course_ids)} courses reindexed cleanly.")
    return 1 if failed else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--course-id", type=int, action="append", required=True, dest="course_ids")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()
    sys.exit(main(args.course_ids, args.verbose))
