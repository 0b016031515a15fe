"""
Data Generation Module
"""
from .generators import ShopDataGenerator, CustomerGenerator, InventoryGenerator, JobGenerator

__all__ = [
    "ShopDataGenerator",
    "CustomerGenerator",
    "InventoryGenerator",
    "JobGenerator",
]
