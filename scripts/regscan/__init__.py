"""
Regulatory news scanner.

Harvests regulatory and legal news from feeds and web pages, removes
duplicates and noise, and stores classified updates.
"""

__version__ = "1.0.0"
