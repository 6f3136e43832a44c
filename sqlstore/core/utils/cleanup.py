"""
Background removal of expired session records.

A sweeper runs one worker thread that wakes every ``interval`` seconds and
deletes records whose expiry has passed. Stopping is cooperative: ``stop``
sets the quit event and blocks until the worker sets the done event.
"""

import enum
import logging
import threading
from typing import Optional, Tuple

from sqlstore.core.config import DEFAULT_CLEANUP_INTERVAL
from sqlstore.core.exceptions import StoreError, SweepError
from sqlstore.core.utils.clock import utcnow
from sqlstore.db.store_client import StoreClient

logger = logging.getLogger(__name__)


class SweeperState(str, enum.Enum):
    STOPPED = "stopped"
    RUNNING = "running"


def stop_cleanup(quit_event: threading.Event, done_event: threading.Event) -> None:
    """Signal a sweeper worker to quit and wait until it has."""
    quit_event.set()
    done_event.wait()


class ExpirySweeper:
    """Periodically deletes expired records from a store client.

    A sweeper starts once; after ``stop`` it stays stopped.
    """

    def __init__(self, client: StoreClient, interval: Optional[float] = None):
        if interval is None or interval <= 0:
            interval = DEFAULT_CLEANUP_INTERVAL
        self.client = client
        self.interval = interval
        self._quit = threading.Event()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._state = SweeperState.STOPPED

    @property
    def state(self) -> SweeperState:
        return self._state

    @property
    def handles(self) -> Tuple[threading.Event, threading.Event]:
        """The ``(quit, done)`` pair returned by ``start``."""
        return self._quit, self._done

    def start(self) -> Tuple[threading.Event, threading.Event]:
        """
        Start the worker thread.

        Returns:
            ``(quit, done)``: set ``quit`` to request termination, wait on
            ``done`` for confirmation
        """
        if self._thread is not None:
            raise RuntimeError("sweeper has already been started")

        self._state = SweeperState.RUNNING
        self._thread = threading.Thread(
            target=self._run, name="sqlstore-sweeper", daemon=True
        )
        self._thread.start()
        logger.info(f"Expired session cleanup running every {self.interval}s")
        return self._quit, self._done

    def stop(self) -> None:
        """Stop the worker and wait for it to exit. No-op if never started."""
        if self._thread is None:
            return
        stop_cleanup(self._quit, self._done)
        self._thread.join()

    def run_once(self) -> int:
        """
        Delete expired records once.

        Returns:
            Number of records deleted

        Raises:
            SweepError: If the store client fails
        """
        try:
            deleted = self.client.delete_expired(utcnow())
        except StoreError as e:
            raise SweepError(str(e)) from e
        if deleted:
            logger.debug(f"Deleted {deleted} expired sessions")
        return deleted

    def _run(self) -> None:
        try:
            while not self._quit.wait(self.interval):
                try:
                    self.run_once()
                except SweepError as e:
                    logger.error(f"unable to delete expired sessions: {e}")
        finally:
            self._state = SweeperState.STOPPED
            self._done.set()
            logger.info("Expired session cleanup stopped")
