#!/usr/bin/env python
"""
Job Worker

Background process that drains the automation job queues (automations,
emails, sync). Use it when WORKER_ENABLED=false keeps the API process from
running jobs itself.

Run with:
    python worker.py

Or with environment:
    WORKER_POLL_INTERVAL=10 WORKER_BATCH_SIZE=50 python worker.py
"""

import sys
import time
import logging
import signal

from rentdesk.config import settings
from rentdesk.database import SessionLocal
from rentdesk.services.job_queue import JobProcessor
from rentdesk.utils.logging_config import setup_logging

logger = logging.getLogger("worker")

RUNNING = True


def signal_handler(signum, frame):
    """Handle shutdown signals gracefully"""
    global RUNNING
    logger.info("Received shutdown signal, finishing current batch...")
    RUNNING = False


def process_jobs(db):
    """Run one batch of due jobs"""
    try:
        return JobProcessor(db).process_batch(limit=settings.worker_batch_size)
    except Exception as e:
        logger.error(f"Error in job processing: {e}")
        return 0, 0


def run_worker():
    """Main worker loop"""
    logger.info("=" * 50)
    logger.info("Starting Job Worker")
    logger.info(f"Poll interval: {settings.worker_poll_interval}s")
    logger.info(f"Batch size: {settings.worker_batch_size}")
    logger.info("=" * 50)

    cycle = 0

    while RUNNING:
        cycle += 1
        start_time = time.time()

        db = SessionLocal()
        try:
            success, failed = process_jobs(db)

            # Log results (only if something happened)
            if success + failed > 0:
                duration = time.time() - start_time
                logger.info(f"Cycle {cycle}: {success} completed, {failed} failed | {duration:.2f}s")
        finally:
            db.close()

        if RUNNING:
            time.sleep(settings.worker_poll_interval)

    logger.info("Worker shutdown complete")


if __name__ == "__main__":
    setup_logging(level=settings.log_level, json_format=settings.log_json, include_uvicorn=False)

    # Register signal handlers for graceful shutdown
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        run_worker()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.critical(f"Worker crashed: {e}")
        sys.exit(1)
