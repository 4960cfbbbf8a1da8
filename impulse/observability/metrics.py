"""
Prometheus metrics definitions for impulse.

Metrics are organized by category:
- Habit completion metrics: outcomes and latency of the completion flow
- Reward metrics: what the reward generator pays out
- Progression metrics: level-ups and equips
- Error metrics: failures by type and component

Metrics are exposed at the /metrics endpoint for Prometheus scraping.
"""

import logging
from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# =============================================================================
# Habit Completion Metrics
# =============================================================================

habit_completions_total = Counter(
    "habit_completions_total",
    "Total habit completion requests by outcome",
    ["outcome"],  # outcome: success/rejected/not_found/failed
)

habit_completion_duration_seconds = Histogram(
    "habit_completion_duration_seconds",
    "Time spent processing a habit completion in seconds",
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

streak_resets_total = Counter(
    "streak_resets_total",
    "Total completions that restarted a streak after a gap",
)

# =============================================================================
# Reward Metrics
# =============================================================================

rewards_granted_total = Counter(
    "rewards_granted_total",
    "Total rewards granted by type and rarity",
    ["reward_type", "rarity"],  # rarity: common/rare/epic, 'none' for non-loot rewards
)

xp_awarded_total = Counter(
    "xp_awarded_total",
    "Total XP awarded through habit completions",
)

# =============================================================================
# Progression Metrics
# =============================================================================

level_ups_total = Counter(
    "level_ups_total",
    "Total level-ups caused by rewards",
)

items_equipped_total = Counter(
    "items_equipped_total",
    "Total equip/unequip operations",
    ["item_type", "action"],  # action: equip/unequip
)

# =============================================================================
# Error Metrics
# =============================================================================

errors_total = Counter(
    "errors_total",
    "Total errors by type and component",
    ["error_type", "component"],  # component: api/service/store
)

logger.info("Prometheus metrics initialized")
