# tests/helpers.py
from datetime import date, timedelta

PASSWORD = "Secret123"


def next_weekday(iso_weekday: int, start: date = None) -> date:
    """First date strictly after `start` (default today) falling on the given ISO weekday."""
    day = (start or date.today()) + timedelta(days=1)
    while day.isoweekday() != iso_weekday:
        day += timedelta(days=1)
    return day
