"""UI-facing facade over calling, inventory and history."""
from console.adapter import CallConsole

__all__ = ["CallConsole"]
