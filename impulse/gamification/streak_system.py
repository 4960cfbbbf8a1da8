"""
Daily Streak Tracking

A habit can be completed once per calendar day. Completing it the day after
the previous completion continues the streak; any longer gap (or a previous
completion dated in the future) starts over at 1.

Calendar days are cut in DAY_BOUNDARY_TIMEZONE, never by elapsed hours, so
23:59 and 00:01 the next morning are consecutive days.
"""

from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo
import logging

from impulse.models.habit import Habit
from impulse.utils.datetime_helpers import calendar_date, to_utc

logger = logging.getLogger(__name__)


def can_complete(habit: Habit, now: datetime, tz: Optional[ZoneInfo] = None) -> bool:
    """True if the habit has not been completed on now's calendar date"""
    if habit.last_completed is None:
        return True

    return calendar_date(habit.last_completed, tz) != calendar_date(now, tz)


def advance_streak(habit: Habit, now: datetime, tz: Optional[ZoneInfo] = None) -> int:
    """
    Count a completion at `now` against the habit's streak

    Logic:
    - First completion: streak = 1
    - Previous completion yesterday: streak + 1
    - Previous completion today: no change at all (re-entry guard)
    - Anything else: reset to 1

    Mutates the habit (streak, best_streak, last_completed, total_completions).

    Returns:
        The streak after this completion
    """
    today = calendar_date(now, tz)

    if habit.last_completed is None:
        habit.set_streak(1)
        logger.debug(f"Habit {habit.id} started a streak")
    else:
        previous = calendar_date(habit.last_completed, tz)
        yesterday = today - timedelta(days=1)

        if previous == yesterday:
            habit.set_streak(habit.streak + 1)
        elif previous == today:
            return habit.streak
        else:
            old_streak = habit.streak
            habit.set_streak(1)
            logger.info(
                f"Habit {habit.id} streak broken. Was {old_streak}, "
                f"last completed {previous.isoformat()}, today {today.isoformat()}"
            )

    habit.last_completed = to_utc(now)
    habit.total_completions += 1

    return habit.streak


def completed_on(habit: Habit, now: datetime, tz: Optional[ZoneInfo] = None) -> bool:
    """True if the habit was completed on now's calendar date"""
    return not can_complete(habit, now, tz)
