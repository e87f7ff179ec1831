from datetime import datetime
from src.app.services.clock import Clock
from src.domain.base import utc_now


class SystemClock(Clock):
    def now(self) -> datetime:
        return utc_now()
