"""Trade management module for abstracted exit logic."""

from engine.trade_management.exit_resolver import ExitResolver, ExitCondition, ExitType

__all__ = ['ExitResolver', 'ExitCondition', 'ExitType']
