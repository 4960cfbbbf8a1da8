"""Impulse: The Habit Casino - gamified habit tracking backend"""

__version__ = "1.0.0"
