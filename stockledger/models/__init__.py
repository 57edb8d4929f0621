# Importing the models registers their tables on ``Base.metadata``.
from .item import Item
from .movement import StockMovement
from .staff import Staff

__all__ = ["Item", "Staff", "StockMovement"]
