"""
LeaderboardService - Rankings across users

Two timeframes:
- all-time: ranked by total XP
- weekly: ranked by completions over the trailing 7 days (active habits only)

Rankings are computed from the store on each call; there is no cached table.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from impulse.db.store import HabitStore
from impulse.exceptions import RecordNotFoundError, ValidationError
from impulse.models.user import User
from impulse.utils.datetime_helpers import now_utc, to_utc, window_start

logger = logging.getLogger(__name__)

TIMEFRAME_ALL_TIME = "all-time"
TIMEFRAME_WEEKLY = "weekly"
TIMEFRAMES = (TIMEFRAME_ALL_TIME, TIMEFRAME_WEEKLY)

DEFAULT_LIMIT = 10
WEEKLY_WINDOW_DAYS = 7


def _entry(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "xp": user.xp,
        "level": user.level,
        "total_habits_completed": user.total_habits_completed,
        "current_badge": user.current_badge,
    }


class LeaderboardService:
    """Service for leaderboard rankings and global stats"""

    def __init__(self, store: HabitStore):
        self.store = store

    async def get_leaderboard(
        self,
        current_user_id: str,
        timeframe: str = TIMEFRAME_ALL_TIME,
        limit: int = DEFAULT_LIMIT,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Ranked leaderboard

        Returns:
            {
                'leaderboard': [{..., 'rank': int, 'is_current_user': bool}],
                'current_user': entry for the caller, or None,
                'timeframe': str,
                'limit': int
            }
        """
        if timeframe not in TIMEFRAMES:
            raise ValidationError(
                f"Unknown leaderboard timeframe '{timeframe}'",
                field="timeframe",
                value=timeframe,
                user_id=current_user_id
            )
        limit = limit if limit and limit > 0 else DEFAULT_LIMIT

        current_user = await self.store.load_user(current_user_id)
        if current_user is None:
            raise RecordNotFoundError(
                f"User {current_user_id} not found",
                record_type="User",
                record_id=current_user_id,
                operation="get_leaderboard"
            )

        users = await self.store.list_users()

        if timeframe == TIMEFRAME_WEEKLY:
            entries = await self._weekly_entries(users, to_utc(now) if now else now_utc())
        else:
            # Stable sort keeps store order for ties
            entries = [_entry(u) for u in sorted(users, key=lambda u: u.xp, reverse=True)]

        leaderboard = []
        for index, entry in enumerate(entries[:limit]):
            leaderboard.append({
                **entry,
                "rank": index + 1,
                "is_current_user": entry["id"] == current_user_id,
            })

        current_entry = next((e for e in leaderboard if e["is_current_user"]), None)
        if current_entry is None and timeframe == TIMEFRAME_ALL_TIME:
            ahead = sum(1 for u in users if u.xp > current_user.xp)
            current_entry = {**_entry(current_user), "rank": ahead + 1, "is_current_user": True}

        return {
            "leaderboard": leaderboard,
            "current_user": current_entry,
            "timeframe": timeframe,
            "limit": limit,
        }

    async def _weekly_entries(self, users: List[User], now: datetime) -> List[Dict[str, Any]]:
        """Users ranked by completions inside the trailing window"""
        since = window_start(now, WEEKLY_WINDOW_DAYS)
        entries = []
        for user in users:
            habits = await self.store.list_habits(user.id, active_only=True)
            weekly = sum(
                1
                for habit in habits
                for record in habit.completion_history
                if to_utc(record.date) >= since
            )
            entries.append({**_entry(user), "weekly_completions": weekly})

        entries.sort(key=lambda e: e["weekly_completions"], reverse=True)
        return entries

    async def get_stats(self, current_user_id: str) -> Dict[str, Any]:
        """
        Global statistics

        Returns:
            {
                'total_users': int,
                'total_habits_completed': int,
                'top_user': {'username', 'xp', 'level'} or None,
                'average_xp': int,
                'current_user_rank': int
            }
        """
        current_user = await self.store.load_user(current_user_id)
        if current_user is None:
            raise RecordNotFoundError(
                f"User {current_user_id} not found",
                record_type="User",
                record_id=current_user_id,
                operation="get_leaderboard_stats"
            )

        users = await self.store.list_users()
        top = max(users, key=lambda u: u.xp, default=None)

        return {
            "total_users": len(users),
            "total_habits_completed": sum(u.total_habits_completed for u in users),
            "top_user": {"username": top.username, "xp": top.xp, "level": top.level} if top else None,
            "average_xp": round(sum(u.xp for u in users) / len(users)) if users else 0,
            "current_user_rank": sum(1 for u in users if u.xp > current_user.xp) + 1,
        }
