"""Working-hours resolution.

Handles:
- Conversion of instants into the organisation's reference zone
- Window membership (weekends are always unavailable)
- Next-available instant with same-day and weekday roll forward
- Human wording of the next availability for replies and digests
"""

from datetime import date, datetime, time, timedelta

import pytz

from coach_queue.domain.availability_constants import MAX_DAYS_AHEAD, WEEKEND_WEEKDAYS
from coach_queue.domain.exceptions import ConfigurationError
from coach_queue.domain.models import Coach, format_clock


def minute_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def is_weekend(day: date) -> bool:
    return day.weekday() in WEEKEND_WEEKDAYS


class WorkingHoursCalendar:
    """Availability calculations in a single reference time zone.

    Stateless apart from the zone, so one instance is shared by every
    component and thread.
    """

    def __init__(self, tz: pytz.BaseTzInfo | str) -> None:
        self.tz = pytz.timezone(tz) if isinstance(tz, str) else tz

    def to_local(self, instant: datetime) -> datetime:
        """Convert an instant to the reference zone (naive input is UTC)."""
        if instant.tzinfo is None:
            instant = pytz.UTC.localize(instant)
        return instant.astimezone(self.tz)

    def local_day(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def localize(self, day: date, minute: int) -> datetime:
        hours, minutes = divmod(minute, 60)
        return self.tz.localize(datetime.combine(day, time(hours, minutes)))

    @staticmethod
    def _require_windows(coach: Coach) -> None:
        if not coach.windows:
            raise ConfigurationError(
                f"Coach {coach.key} has no availability windows configured"
            )

    def is_available(self, coach: Coach, now: datetime) -> bool:
        """Return True when `now` is a weekday inside one of the coach's windows.

        Raises:
            ConfigurationError: If the coach has no windows
        """
        self._require_windows(coach)
        local = self.to_local(now)
        if is_weekend(local.date()):
            return False
        minute = minute_of_day(local)
        return any(window.contains(minute) for window in coach.windows)

    def next_available(self, coach: Coach, from_instant: datetime) -> datetime:
        """Compute the next moment the coach becomes available.

        A coach who is available right now gets the current local instant
        back; callers should check `is_available` first.

        Raises:
            ConfigurationError: If the coach has no windows
        """
        self._require_windows(coach)
        local = self.to_local(from_instant)
        if self.is_available(coach, local):
            return local

        today = local.date()
        if not is_weekend(today):
            minute = minute_of_day(local)
            later_starts = [
                window.start_minute
                for window in coach.windows
                if window.start_minute > minute
            ]
            if later_starts:
                return self.localize(today, min(later_starts))

        earliest_start = min(window.start_minute for window in coach.windows)
        day = today
        for _ in range(MAX_DAYS_AHEAD):
            day += timedelta(days=1)
            if not is_weekend(day):
                return self.localize(day, earliest_start)

        raise ConfigurationError(
            f"No weekday found within {MAX_DAYS_AHEAD} days for coach {coach.key}"
        )

    def describe_next_available(self, coach: Coach, from_instant: datetime) -> str:
        """Human wording of `next_available`.

        Example:
            "today at 10:00" or "Wednesday at 10:00"
        """
        local = self.to_local(from_instant)
        upcoming = self.next_available(coach, local)
        clock = format_clock(minute_of_day(upcoming))
        if upcoming.date() == local.date():
            return f"today at {clock}"
        return f"{upcoming.strftime('%A')} at {clock}"

    def describe_windows(self, coach: Coach) -> str:
        if not coach.windows:
            return "no working hours configured"
        windows = ", ".join(str(window) for window in coach.windows)
        return f"{windows} ({self.tz.zone}), Monday to Friday"
