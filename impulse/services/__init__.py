"""
Service layer for impulse

Services wrap the reward engine and the store behind use-case methods that the
API (or any other caller) invokes. They own validation, transactions and error
mapping; the engine modules in impulse.gamification stay pure.
"""

from impulse.services.container import ServiceContainer, get_container, init_container

__all__ = ["ServiceContainer", "get_container", "init_container"]
