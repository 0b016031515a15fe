"""
Shop Analytics

Cached business analytics for an automotive repair shop.
"""

__version__ = "1.0.0"
