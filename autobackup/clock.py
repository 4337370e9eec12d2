"""
Sources of "now" for naming backups and running retention.

Wallclock deployments stamp backups with local time. Domain deployments stamp
them with a counter supplied by the host application, e.g. elapsed simulated
seconds, so that retention windows stand still while the application is paused.
"""

from abc import ABC, abstractmethod
from typing import Callable

from autobackup.interfaces import ClockMode, Datetime, Timestamp


class Clock(ABC):

    mode: ClockMode

    @abstractmethod
    def now(self) -> Timestamp:
        pass


class WallClock(Clock):

    mode = 'wallclock'

    def now(self) -> Datetime:
        return Datetime.now()


class DomainClock(Clock):

    mode = 'domain'

    def __init__(self, counter: Callable[[], float]):
        self._counter = counter

    def now(self) -> int:
        value = int(self._counter())
        if value < 0:
            raise ValueError(f"domain clock returned a negative counter = {value}")
        return value

    def __str__(self):
        return f"DomainClock(counter={self._counter})"
