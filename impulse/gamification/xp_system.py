"""
XP and Leveling

Flat leveling curve: every 100 XP is one level, starting at level 1.
The level itself is stored on the user and re-derived from XP on every change.
"""

from typing import Dict

from impulse.models.user import XP_PER_LEVEL, level_for_xp


def calculate_level_from_xp(total_xp: int) -> Dict[str, int]:
    """
    Calculate level progress from total XP

    Returns:
        {
            'current_level': int,
            'xp_in_current_level': int,
            'xp_to_next_level': int,
            'total_xp_for_next_level': int
        }
    """
    total_xp = max(total_xp, 0)
    level = level_for_xp(total_xp)
    xp_in_current_level = total_xp % XP_PER_LEVEL

    return {
        "current_level": level,
        "xp_in_current_level": xp_in_current_level,
        "xp_to_next_level": XP_PER_LEVEL - xp_in_current_level,
        "total_xp_for_next_level": level * XP_PER_LEVEL,
    }
