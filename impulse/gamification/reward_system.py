"""
Random Reward System

Decides what a habit completion pays out and applies it to the user.

Reward Table (one uniform draw r in [0, 1)):
- [0.00, 0.20): nothing
- [0.20, 0.70): XP = 10 + 5 per full 5 streak days + 0-5 random
- [0.70, 0.85): streak protection token (+5 XP)
- [0.85, 1.00): loot item (+10/15/25 XP for common/rare/epic)

Loot rarity uses a second draw shifted down by a streak bonus of 1% per streak
day, capped at 20%. Legendary loot is never rolled.

The random source is injected so draws are reproducible in tests; production
uses a module-level generator (seeded from REWARD_SEED when set).
"""

from dataclasses import dataclass
from typing import Optional, Protocol, TYPE_CHECKING
import logging
import random

from impulse.config import REWARD_SEED
from impulse.gamification.loot_catalog import get_catalog_items
from impulse.models.habit import Habit
from impulse.models.loot import LootItem
from impulse.models.reward import LootRarity, RewardOutcome, RewardType
from impulse.models.user import User

if TYPE_CHECKING:
    from impulse.db.store import StoreSession

logger = logging.getLogger(__name__)

# Outcome thresholds on the first draw
NOTHING_THRESHOLD = 0.20
XP_THRESHOLD = 0.70
TOKEN_THRESHOLD = 0.85

# XP reward
BASE_XP = 10
XP_PER_STREAK_STEP = 5
STREAK_STEP_DAYS = 5
MAX_RANDOM_XP_BONUS = 5

# Token reward
TOKEN_AMOUNT = 1
TOKEN_XP = 5

# Loot rarity sub-roll
EPIC_THRESHOLD = 0.10
RARE_THRESHOLD = 0.40
STREAK_BONUS_PER_DAY = 0.01
MAX_STREAK_BONUS = 0.20

LOOT_XP = {
    LootRarity.COMMON: 10,
    LootRarity.RARE: 15,
    LootRarity.EPIC: 25,
}


class RandomSource(Protocol):
    """The subset of random.Random the generator draws from"""

    def random(self) -> float: ...

    def randint(self, a: int, b: int) -> int: ...

    def choice(self, seq): ...


def _build_default_rng() -> random.Random:
    if REWARD_SEED:
        logger.warning(f"Reward generator seeded with REWARD_SEED={REWARD_SEED}; draws are reproducible")
        return random.Random(int(REWARD_SEED))
    return random.Random()


_default_rng = _build_default_rng()


def streak_rarity_bonus(streak: int) -> float:
    """Downward shift of the rarity roll: 1% per streak day, capped at 20%"""
    return min(max(streak, 0) * STREAK_BONUS_PER_DAY, MAX_STREAK_BONUS)


def roll_rarity(streak: int, rng: RandomSource) -> LootRarity:
    """Pick a loot rarity, favouring rarer tiers for longer streaks"""
    adjusted = rng.random() - streak_rarity_bonus(streak)

    if adjusted < EPIC_THRESHOLD:
        return LootRarity.EPIC
    if adjusted < RARE_THRESHOLD:
        return LootRarity.RARE
    return LootRarity.COMMON


def calculate_xp_reward(streak: int, rng: RandomSource) -> int:
    """XP for an XP outcome: base + streak step bonus + 0-5 random"""
    streak_bonus = (max(streak, 0) // STREAK_STEP_DAYS) * XP_PER_STREAK_STEP
    return BASE_XP + streak_bonus + rng.randint(0, MAX_RANDOM_XP_BONUS)


def generate_reward(streak: int, rng: Optional[RandomSource] = None) -> RewardOutcome:
    """
    Draw a reward for a completion at the given streak length

    Args:
        streak: Streak length after the completion was counted
        rng: Random source (defaults to the module generator)

    Returns:
        RewardOutcome with type, xp and type-specific payload
    """
    rng = rng or _default_rng
    roll = rng.random()

    if roll < NOTHING_THRESHOLD:
        return RewardOutcome(
            type=RewardType.NOTHING,
            xp=0,
            message="Better luck next time! 🎰",
        )

    if roll < XP_THRESHOLD:
        total_xp = calculate_xp_reward(streak, rng)
        return RewardOutcome(
            type=RewardType.XP,
            xp=total_xp,
            amount=total_xp,
            message=f"Gained {total_xp} XP! 🌟",
        )

    if roll < TOKEN_THRESHOLD:
        return RewardOutcome(
            type=RewardType.TOKEN,
            xp=TOKEN_XP,
            amount=TOKEN_AMOUNT,
            message="Earned a Streak Protection Token! 🛡️",
        )

    rarity = roll_rarity(streak, rng)
    item = rng.choice(get_catalog_items(rarity))

    return RewardOutcome(
        type=RewardType.LOOT,
        xp=LOOT_XP[rarity],
        rarity=rarity,
        item=item,
        message=f"Found {rarity.value} {item.name}! {item.icon}",
    )


@dataclass
class AppliedReward:
    """What apply_reward changed"""
    reward: RewardOutcome
    leveled_up: bool
    loot_item: Optional[LootItem] = None


async def apply_reward(
    user: User,
    habit: Habit,
    reward: RewardOutcome,
    session: "StoreSession"
) -> AppliedReward:
    """
    Apply a drawn reward to the user

    Always adds reward XP and one completed habit to the user (recomputing
    level). Tokens add to streak_protection_tokens; loot mints a new,
    unequipped LootItem through the session.

    The session is the caller's unit of work: if creating the loot item fails
    nothing is committed, so XP and item are granted together or not at all.
    """
    leveled_up = user.add_xp(reward.xp)
    user.total_habits_completed += 1

    loot_item = None

    if reward.type == RewardType.TOKEN:
        user.streak_protection_tokens += reward.amount or 0

    elif reward.type == RewardType.LOOT:
        loot_item = LootItem(
            user_id=user.id,
            type=reward.item.type,
            name=reward.item.name,
            rarity=reward.rarity,
            description=reward.item.description,
            icon=reward.item.icon,
            from_habit=habit.id,
        )
        await session.create_loot_item(loot_item)

    logger.info(
        f"Applied {reward.type.value} reward to user {user.id} from habit {habit.id}: "
        f"+{reward.xp} XP (total {user.xp}, level {user.level})"
    )

    if leveled_up:
        logger.info(f"User {user.id} leveled up to {user.level}!")

    return AppliedReward(reward=reward, leveled_up=leveled_up, loot_item=loot_item)
