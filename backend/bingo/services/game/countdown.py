import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_COUNTDOWN = 30


class ReadyCountdown:
    """Local ready countdown for one participant.

    - Ticks once per time unit on a background task
    - ``on_expire`` fires once when it reaches zero, unless cancelled first
    - Affects only the local participant; it is not an authoritative timer
    """

    def __init__(self, duration: int = DEFAULT_COUNTDOWN, on_expire: Optional[Callable[[], None]] = None,
                 spawn: Optional[Callable] = None, sleep: Optional[Callable[[float], None]] = None):
        self.duration = max(0, int(duration))
        self.remaining = self.duration
        self.on_expire = on_expire
        self._spawn = spawn
        self._sleep = sleep
        self._cancelled = threading.Event()
        self._started = False
        self.expired = False

    @property
    def running(self) -> bool:
        return self._started and not self._cancelled.is_set() and not self.expired

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        spawn = self._spawn
        if spawn is None:
            from bingo import socketio
            spawn = socketio.start_background_task
        spawn(self._worker)

    def cancel(self) -> None:
        self._cancelled.set()

    def _worker(self) -> None:
        sleep = self._sleep
        if sleep is None:
            from bingo import socketio
            sleep = socketio.sleep
        while self.remaining > 0:
            if self._cancelled.is_set():
                logger.info("[countdown-abort] cancelled with %ss left", self.remaining)
                return
            sleep(1)
            self.remaining -= 1
        if self._cancelled.is_set():
            return
        self.expired = True
        logger.info("[countdown-fire] ready countdown expired")
        if self.on_expire is not None:
            self.on_expire()
