"""
Inventory counting.

Models:
- Location (storage places inside a restaurant)
- CalculatorList (product lists saved from the purchase calculator)
- InventorySession (one counting exercise, Aberto -> Fechado once)
- InventoryItem (counted quantity per product/variation/location in a session)
- TheoreticalStock (summed counts per product/variation, written on session close)
"""

from .location import Location
from .calculator_list import CalculatorList
from .session import InventorySession
from .item import InventoryItem
from .stock import TheoreticalStock

__all__ = [
    "Location",
    "CalculatorList",
    "InventorySession",
    "InventoryItem",
    "TheoreticalStock",
]
