"""
Commands Package

Slash commands of the bot. The registry is explicit: every command is
listed in build_registry.
"""

from typing import Dict, Optional

from commands.base import Command
from commands.ping import PingCommand
from commands.portfolio import PortfolioCommand
from commands.stock import StockCommand
from commands.watch import WatchCommand
from cores.render_pipeline import ComponentBuilder
from tracking.onboarding import SymbolTracker
from tracking.store import PriceStore


def build_registry(
    store: PriceStore,
    tracker: SymbolTracker,
    builder: ComponentBuilder,
    timeout: Optional[float] = None,
) -> Dict[str, Command]:
    """
    Build the command registry.

    Returns:
        Dict of command name -> Command, in menu order
    """
    commands = [
        PingCommand(),
        StockCommand(builder),
        WatchCommand(store, tracker, timeout=timeout),
        PortfolioCommand(store, tracker, builder, timeout=timeout),
    ]
    return {command.name: command for command in commands}


__all__ = [
    "Command",
    "PingCommand",
    "PortfolioCommand",
    "StockCommand",
    "WatchCommand",
    "build_registry",
]
