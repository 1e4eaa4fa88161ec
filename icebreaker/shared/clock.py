"""Wall-clock helpers for the scheduling timezone"""

from datetime import datetime
from zoneinfo import ZoneInfo

from ..config import SCHEDULING_TIMEZONE


def local_now() -> datetime:
    """
    Current wall-clock time in SCHEDULING_TIMEZONE as a naive datetime.

    Availability windows, slot times and meeting timestamps are all stored as
    naive wall-clock values in this zone, so every comparison uses this.
    """
    return datetime.now(ZoneInfo(SCHEDULING_TIMEZONE)).replace(tzinfo=None, microsecond=0)
