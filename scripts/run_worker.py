#!/usr/bin/env python
"""Script to run the Celery worker or the beat scheduler.

Usage:
    # Run a worker on every queue
    python scripts/run_worker.py

    # Run a worker on one queue
    python scripts/run_worker.py --queue maintenance

    # Run the beat scheduler (expiry sweep, reminders, dedupe purge)
    python scripts/run_worker.py --beat
"""

import argparse
import subprocess
import sys
from pathlib import Path


PROJECT_ROOT = Path(__file__).parent.parent
APP = "voucherswap.workers.celery_app"


def run_worker(queue: str | None = None, concurrency: int = 2):
    """Run Celery worker."""
    cmd = [
        sys.executable,
        "-m",
        "celery",
        "-A",
        APP,
        "worker",
        "--loglevel=INFO",
        f"--concurrency={concurrency}",
    ]

    if queue:
        cmd.extend(["-Q", queue])

    print(f"Starting Celery worker: {' '.join(cmd)}")
    subprocess.run(cmd, check=False, cwd=PROJECT_ROOT)


def run_beat():
    """Run Celery Beat scheduler."""
    cmd = [sys.executable, "-m", "celery", "-A", APP, "beat", "--loglevel=INFO"]

    print(f"Starting Celery Beat: {' '.join(cmd)}")
    subprocess.run(cmd, check=False, cwd=PROJECT_ROOT)


def main():
    parser = argparse.ArgumentParser(description="Run Celery components")
    parser.add_argument("--queue", "-Q", help="Specific queue to process (default, maintenance)")
    parser.add_argument(
        "--concurrency",
        "-c",
        type=int,
        default=2,
        help="Number of worker processes (default: 2)",
    )
    parser.add_argument("--beat", "-B", action="store_true", help="Run Beat scheduler instead of worker")

    args = parser.parse_args()

    if args.beat:
        run_beat()
    else:
        run_worker(queue=args.queue, concurrency=args.concurrency)


if __name__ == "__main__":
    main()
