#!/usr/bin/env python3
"""
Recompute benchmark segments from the trailing 90 days of contributions.

Usage:
    python scripts/refresh_benchmarks.py            # refresh in-process
    python scripts/refresh_benchmarks.py --enqueue  # hand off to an RQ worker

Requires: DATABASE_URL set (or defaults to sqlite:///local.db); Redis for --enqueue.
"""
import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from creator_insights.logging_config import configure_logging
from creator_insights.jobs import enqueue_refresh
from creator_insights.services.benchmarks import refresh_benchmarks


def main():
    parser = argparse.ArgumentParser(description='Refresh benchmark percentiles')
    parser.add_argument('--enqueue', action='store_true', help='Run on a worker instead of in-process')
    args = parser.parse_args()

    configure_logging()

    if args.enqueue:
        ok = enqueue_refresh()
        print('Refresh enqueued' if ok else 'Failed to enqueue refresh')
        return 0 if ok else 1

    results = refresh_benchmarks()
    for segment, written in results.items():
        print(f"  {segment:<24} {'written' if written else 'skipped'}")
    print(f"{sum(results.values())}/{len(results)} segments written")
    return 0


if __name__ == '__main__':
    sys.exit(main())
