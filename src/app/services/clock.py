"""Clock Interface

Every time-dependent decision (activation dates, job windows, cooldowns)
reads the time through a Clock so that tests can freeze or advance it.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time as a naive UTC datetime"""
        pass
