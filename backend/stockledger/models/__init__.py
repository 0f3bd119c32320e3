from .catalog import Category, Product
from .inventory import StockBatch, StockMovement
from .sales import Sale, SaleLine

__all__ = [
    'Category', 'Product',
    'StockBatch', 'StockMovement',
    'Sale', 'SaleLine',
]
