import threading
from typing import Callable, Optional

import humanize

from autobackup import logging

logger = logging.get_logger(__name__)

Action = Callable[[], None]
ErrorHandler = Callable[[BaseException], None]


class Debouncer:
    """
    Collapses bursts of scheduled actions into a single delayed run.

    Each call to `schedule` replaces the pending action and restarts the quiet
    period countdown. Once the countdown runs out without another call, the
    latest action runs exactly once on the timer thread. Fired actions never
    overlap, a fire that lands while a previous action is still running waits
    for it to finish.

    Exceptions raised by an action are handed to `on_error` and otherwise
    swallowed, so the debouncer keeps accepting work after a failure.

    `stop` does not return while an action is running. Calling it from inside
    an action deadlocks.
    """

    def __init__(self, quiet_period: float, on_error: Optional[ErrorHandler] = None):
        if quiet_period < 0:
            raise ValueError(f"quiet_period = {quiet_period} must not be negative")
        self.quiet_period = quiet_period
        self._on_error = on_error
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._run_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._action: Optional[Action] = None
        self._generation = 0
        self._in_flight = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._action is not None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._in_flight > 0

    def schedule(self, action: Action) -> None:
        """
        Make `action` the pending action and restart the countdown.
        """
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                logger.debug("Debounce reset", quiet_period=humanize.naturaldelta(self.quiet_period))
            self._generation += 1
            self._action = action
            self._timer = threading.Timer(self.quiet_period, self._fire, args=(self._generation,))
            self._timer.daemon = True
            self._timer.start()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # a newer schedule call raced with this timer and won
            if generation != self._generation or self._action is None:
                return
            action = self._take()
        logger.debug("Debounce fired", generation=generation)
        self._run(action)

    def _take(self) -> Action:
        # caller holds self._lock
        action = self._action
        self._cancel()
        self._in_flight += 1
        return action

    def _run(self, action: Action) -> None:
        try:
            with self._run_lock:
                try:
                    action()
                except Exception as e:
                    if self._on_error is None:
                        logger.exception("Debounced action failed")
                    else:
                        self._on_error(e)
        finally:
            with self._lock:
                self._in_flight -= 1
                self._idle.notify_all()

    def _wait_idle(self) -> None:
        # caller holds self._lock
        if self._in_flight:
            logger.debug("Waiting for running action to finish")
        self._idle.wait_for(lambda: self._in_flight == 0)

    def flush(self) -> bool:
        """
        Run the pending action now, on the calling thread. With nothing pending,
        wait for an action that is already running instead.

        Returns:
            bool: True if there was a pending action to run.
        """
        with self._lock:
            if self._action is None:
                self._wait_idle()
                return False
            action = self._take()
        self._run(action)
        return True

    def stop(self) -> None:
        """
        Cancel the pending countdown without running it, then wait for an action
        that is already running to finish. Safe to call more than once.
        """
        with self._lock:
            self._cancel()
            self._wait_idle()

    def _cancel(self):
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._action = None
        self._generation += 1
