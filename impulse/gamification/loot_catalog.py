"""
Loot Catalog

Fixed set of collectibles that can drop from a loot reward. Each rolled tier
(common, rare, epic) holds six items: two badges, two themes and two
avatar/effect items. Legendary has no catalog entries; those items are only ever
granted manually.
"""

from impulse.models.reward import LootRarity, LootTemplate, LootType

LOOT_CATALOG: dict[LootRarity, tuple[LootTemplate, ...]] = {
    LootRarity.COMMON: (
        LootTemplate(type=LootType.BADGE, name="First Steps", icon="👶", description="Started your journey"),
        LootTemplate(type=LootType.BADGE, name="Consistent", icon="🔄", description="Building good habits"),
        LootTemplate(type=LootType.THEME, name="Forest Green", icon="🌲", description="Calm and natural"),
        LootTemplate(type=LootType.THEME, name="Ocean Blue", icon="🌊", description="Deep and peaceful"),
        LootTemplate(type=LootType.EFFECT, name="Sparkle", icon="✨", description="Add some magic"),
        LootTemplate(type=LootType.EFFECT, name="Glow", icon="💫", description="Shine bright"),
    ),
    LootRarity.RARE: (
        LootTemplate(type=LootType.BADGE, name="Streak Master", icon="🔥", description="Maintaining impressive streaks"),
        LootTemplate(type=LootType.BADGE, name="Dedicated", icon="💪", description="Never giving up"),
        LootTemplate(type=LootType.THEME, name="Golden Hour", icon="🌅", description="Warm and inspiring"),
        LootTemplate(type=LootType.THEME, name="Midnight Purple", icon="🌙", description="Mysterious and elegant"),
        LootTemplate(type=LootType.AVATAR, name="Warrior", icon="⚔️", description="Battle-ready avatar"),
        LootTemplate(type=LootType.EFFECT, name="Fire Trail", icon="🔥", description="Leave a trail of flames"),
    ),
    LootRarity.EPIC: (
        LootTemplate(type=LootType.BADGE, name="Legendary", icon="👑", description="Achieved greatness"),
        LootTemplate(type=LootType.BADGE, name="Unstoppable", icon="🚀", description="Nothing can stop you"),
        LootTemplate(type=LootType.THEME, name="Cosmic", icon="🌌", description="Out of this world"),
        LootTemplate(type=LootType.THEME, name="Diamond", icon="💎", description="Precious and rare"),
        LootTemplate(type=LootType.AVATAR, name="Phoenix", icon="🦅", description="Rise from the ashes"),
        LootTemplate(type=LootType.EFFECT, name="Lightning", icon="⚡", description="Electric energy"),
    ),
}


def get_catalog_items(rarity: LootRarity) -> tuple[LootTemplate, ...]:
    """Items that can drop for a rarity tier (empty for legendary)"""
    return LOOT_CATALOG.get(rarity, ())
