"""
Service Container - Dependency Injection Container

Simple DI container for managing service instances and their dependencies.
Uses lazy loading to only instantiate services when first accessed.
"""

from dataclasses import dataclass, field
from typing import Optional
import logging

from impulse.db.store import HabitStore
from impulse.gamification.reward_system import RandomSource

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Services are lazy-loaded on first access via properties.
    The store (and optionally the reward random source) are injected.
    """

    # Infrastructure dependencies (injected)
    store: HabitStore
    rng: Optional[RandomSource] = None

    # Services (lazy-loaded via properties)
    _habit_service: Optional[object] = field(default=None, init=False, repr=False)
    _inventory_service: Optional[object] = field(default=None, init=False, repr=False)
    _leaderboard_service: Optional[object] = field(default=None, init=False, repr=False)
    _user_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def habit_service(self):
        """Get HabitService instance (lazy-loaded)"""
        if self._habit_service is None:
            from impulse.services.habit_service import HabitService
            self._habit_service = HabitService(self.store, rng=self.rng)
            logger.debug("HabitService instantiated")
        return self._habit_service

    @property
    def inventory_service(self):
        """Get InventoryService instance (lazy-loaded)"""
        if self._inventory_service is None:
            from impulse.services.inventory_service import InventoryService
            self._inventory_service = InventoryService(self.store)
            logger.debug("InventoryService instantiated")
        return self._inventory_service

    @property
    def leaderboard_service(self):
        """Get LeaderboardService instance (lazy-loaded)"""
        if self._leaderboard_service is None:
            from impulse.services.leaderboard_service import LeaderboardService
            self._leaderboard_service = LeaderboardService(self.store)
            logger.debug("LeaderboardService instantiated")
        return self._leaderboard_service

    @property
    def user_service(self):
        """Get UserService instance (lazy-loaded)"""
        if self._user_service is None:
            from impulse.services.user_service import UserService
            self._user_service = UserService(self.store)
            logger.debug("UserService instantiated")
        return self._user_service


def build_store(backend: Optional[str] = None) -> HabitStore:
    """
    Create the configured store backend.

    Args:
        backend: 'memory' or 'postgres' (defaults to STORE_BACKEND)
    """
    from impulse.config import STORE_BACKEND

    backend = (backend or STORE_BACKEND).lower()
    if backend == "postgres":
        from impulse.db.postgres_store import PostgresStore
        return PostgresStore()

    from impulse.db.memory_store import MemoryStore
    return MemoryStore()


# Global container instance (initialized by the API server)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() before using services."
        )
    return _container


def init_container(
    store: Optional[HabitStore] = None,
    rng: Optional[RandomSource] = None
) -> ServiceContainer:
    """
    Initialize the global service container.

    Args:
        store: Store instance (built from configuration when None)
        rng: Optional random source for reward draws

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(store=store if store is not None else build_store(), rng=rng)

    logger.info(f"Service container initialized with {type(_container.store).__name__}")
    return _container
