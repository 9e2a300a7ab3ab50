"""
Background jobs for the stand-up bot.

- reminder_tick: one minute of reminder and deadline processing
"""

from .reminder_tick import TickResult, run_reminder_tick

__all__ = ["TickResult", "run_reminder_tick"]
