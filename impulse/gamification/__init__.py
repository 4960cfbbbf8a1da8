"""
Reward & Streak Engine for Impulse

- Streak tracking (one completion per calendar day)
- Randomized rewards: XP, streak protection tokens, loot
- Reward application to users and inventory
- Flat XP leveling
"""

from impulse.gamification.streak_system import can_complete, advance_streak
from impulse.gamification.reward_system import generate_reward, apply_reward
from impulse.gamification.xp_system import calculate_level_from_xp

__all__ = [
    "can_complete",
    "advance_streak",
    "generate_reward",
    "apply_reward",
    "calculate_level_from_xp",
]
