# sweeper.py
import logging
from threading import Event, Thread

from database import SessionLocal
from errors import StorageWriteError
from link_store import sweep_expired

logger = logging.getLogger(__name__)


class LinkSweeper:
    """Deletes expired links every `interval` seconds on a daemon thread."""

    def __init__(self, ttl_seconds: int, interval: int, session_factory=SessionLocal):
        self.ttl_seconds = ttl_seconds
        self.interval = interval
        self.session_factory = session_factory
        self._stop = Event()
        self._thread = None

    def run_once(self) -> int:
        db = self.session_factory()
        try:
            return sweep_expired(db, self.ttl_seconds)
        finally:
            db.close()

    def _loop(self):
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except StorageWriteError:
                logger.warning(f"Sweep failed, retrying in {self.interval}s")

    def start(self):
        if self._thread is not None:
            return
        self._thread = Thread(target=self._loop, name="link-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Link sweeper started (ttl={self.ttl_seconds}s, every {self.interval}s)")

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
