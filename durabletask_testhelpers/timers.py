# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Timer trigger payloads passed to starter functions.

The shapes mirror the Azure Functions timer binding so that orchestrations
under test receive the same input they would in a function app.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _require_naive(at: time) -> time:
    if at.tzinfo is not None:
        raise ValueError(f"Times of day must be naive; they are interpreted in the timezone of `now`, got {at}.")
    return at


def _next_at(now: datetime, day: date, at: time) -> datetime:
    return datetime.combine(day, at, tzinfo=now.tzinfo)


class TimerSchedule(ABC):
    """Base class for timer schedules."""

    @abstractmethod
    def get_next_occurrence(self, now: datetime) -> Optional[datetime]:
        """Returns the first occurrence strictly after `now`, or None if the schedule never fires."""
        pass

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        pass

    def get_next_occurrences(self, count: int, now: Optional[datetime] = None) -> list[datetime]:
        if now is None:
            now = datetime.now(timezone.utc)
        occurrences = []
        current = now
        for _ in range(count):
            current = self.get_next_occurrence(current)
            if current is None:
                break
            occurrences.append(current)
        return occurrences


class ConstantSchedule(TimerSchedule):
    def __init__(self, interval: timedelta):
        if interval <= timedelta(0):
            raise ValueError("interval must be positive.")
        self.interval = interval

    def get_next_occurrence(self, now: datetime) -> Optional[datetime]:
        return now + self.interval

    def to_dict(self) -> dict[str, Any]:
        return {"Type": "Constant", "Interval": self.interval.total_seconds()}

    def __str__(self):
        return f"Constant: {self.interval}"


class DailySchedule(TimerSchedule):
    def __init__(self, *times_of_day: time):
        self.times_of_day = sorted(_require_naive(t) for t in times_of_day)

    def get_next_occurrence(self, now: datetime) -> Optional[datetime]:
        if not self.times_of_day:
            return None
        for at in self.times_of_day:
            candidate = _next_at(now, now.date(), at)
            if candidate > now:
                return candidate
        return _next_at(now, now.date() + timedelta(days=1), self.times_of_day[0])

    def to_dict(self) -> dict[str, Any]:
        return {"Type": "Daily", "Times": [t.isoformat() for t in self.times_of_day]}

    def __str__(self):
        return "Daily: " + ", ".join(t.isoformat() for t in self.times_of_day)


class WeeklySchedule(TimerSchedule):
    """Fires on the given weekdays (Monday is 0) at the given times. Empty by default."""

    def __init__(self):
        self.occurrences: list[tuple[int, time]] = []

    def add(self, day: int, at: time) -> 'WeeklySchedule':
        if not 0 <= day <= 6:
            raise ValueError(f"day must be between 0 (Monday) and 6 (Sunday), got {day}.")
        self.occurrences.append((day, _require_naive(at)))
        self.occurrences.sort()
        return self

    def get_next_occurrence(self, now: datetime) -> Optional[datetime]:
        candidates = []
        for day, at in self.occurrences:
            days_ahead = (day - now.weekday()) % 7
            candidate = _next_at(now, now.date() + timedelta(days=days_ahead), at)
            if candidate <= now:
                candidate += timedelta(days=7)
            candidates.append(candidate)
        return min(candidates) if candidates else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "Type": "Weekly",
            "Occurrences": [{"Day": day, "Time": at.isoformat()} for day, at in self.occurrences],
        }

    def __str__(self):
        return "Weekly: " + ", ".join(f"{day}@{at.isoformat()}" for day, at in self.occurrences)


@dataclass
class ScheduleStatus:
    last: Optional[datetime] = None
    next: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "Last": _format_datetime(self.last),
            "Next": _format_datetime(self.next),
            "LastUpdated": _format_datetime(self.last_updated),
        }


@dataclass
class TimerInfo:
    """The payload of a timer trigger: the schedule and its status."""
    schedule: TimerSchedule
    schedule_status: ScheduleStatus = field(default_factory=ScheduleStatus)
    is_past_due: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "Schedule": self.schedule.to_dict(),
            "ScheduleStatus": self.schedule_status.to_dict(),
            "IsPastDue": self.is_past_due,
        }

    def format_next_occurrences(self, count: int, now: Optional[datetime] = None) -> str:
        occurrences = self.schedule.get_next_occurrences(count, now)
        lines = [f"The next {count} occurrences of the schedule ({self.schedule}) will be:"]
        lines.extend(o.isoformat() for o in occurrences)
        return "\n".join(lines)
