"""Owned-number inventory and call-forwarding rules."""
from inventory.forwarding import CallForwardingManager
from inventory.numbers import NumberInventory

__all__ = ["NumberInventory", "CallForwardingManager"]
