"""Local wall clock; archive partitions and daily reports follow the dispatch centre's date."""

from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

from taxidispatch.config import settings

Clock = Callable[[], datetime]


def local_now() -> datetime:
    return datetime.now(ZoneInfo(settings.timezone))
