"""Injectable time source and repeating timer used by the simulation scheduler"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock returning naive UTC datetimes"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class RepeatingTimer(Protocol):
    def start(self, interval_seconds: float, callback: Callable[[], None]) -> None: ...

    def cancel(self) -> None: ...


class ThreadingTimer:
    """
    Invoke a callback every interval on a daemon thread.

    cancel() stops future ticks; a callback already running is left to finish.
    """

    def __init__(self) -> None:
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self, interval_seconds: float, callback: Callable[[], None]) -> None:
        self._stop.clear()

        def loop() -> None:
            while not self._stop.wait(interval_seconds):
                try:
                    callback()
                except Exception:
                    logger.exception("Scheduled tick failed")

        self._thread = threading.Thread(target=loop, name="simulation-timer", daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()
        self._thread = None


class FixedClock:
    """Clock pinned to a moment; advance() moves it forward"""

    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, delta: timedelta) -> datetime:
        self.moment = self.moment + delta
        return self.moment
