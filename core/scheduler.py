"""
Background publisher for scheduled posts.

The ScheduledPublisher polls the database at a fixed interval and publishes
every post whose ``scheduled_at`` has passed. It is started by
``flask cms scheduler``; ``flask cms publish-scheduled`` runs one pass for
cron based deployments.
"""

import logging
import threading
import time
from typing import Optional

from flask import Flask

from extensions import db

logger = logging.getLogger(__name__)


class ScheduledPublisher:
    """
    Polling thread that publishes due scheduled posts.

    Args:
        app: Flask application whose context the thread runs in
        interval: Seconds between polls (defaults to SCHEDULER_INTERVAL_SECONDS)
    """

    def __init__(self, app: Flask, interval: Optional[float] = None) -> None:
        self.app = app
        self.interval = float(interval if interval is not None
                              else app.config.get('SCHEDULER_INTERVAL_SECONDS', 60))
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0
        self.published = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        """
        Publish every due post once.

        Returns:
            int: Number of posts published
        """
        from services.post_service import PostService

        with self.app.app_context():
            try:
                published = PostService.publish_scheduled_posts()
            finally:
                db.session.remove()
        self.runs += 1
        self.published += len(published)
        if published:
            logger.info("Scheduler published %d post(s)", len(published))
        return len(published)

    def start(self) -> bool:
        """
        Start polling in a daemon thread.

        Returns:
            bool: False if the publisher was already running
        """
        if self.running:
            logger.warning("Scheduled publisher already running")
            return False
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="ScheduledPublisherThread", daemon=True)
        self._thread.start()
        logger.info("Scheduled publisher started with interval %ss", self.interval)
        return True

    def stop(self, timeout: float = 5.0) -> None:
        """Stop polling and wait for the thread to finish."""
        if not self._thread:
            return
        self._stop_event.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        logger.info("Scheduled publisher stopped")

    def wait(self) -> None:
        """Block until the publisher is stopped (used by the CLI command)."""
        while self.running:
            self._stop_event.wait(1.0)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            start_time = time.time()
            try:
                self.run_once()
            except Exception as e:
                logger.error("Error in scheduled publisher loop: %s", e, exc_info=True)
            elapsed = time.time() - start_time
            self._stop_event.wait(max(0.1, self.interval - elapsed))
