"""
HN Reader Cache

Local feed/favorites cache for a terminal Hacker News client.
Provides feed listings, staleness tracking, favorites and the background fetch pipeline.
"""

__version__ = "0.4.0"
