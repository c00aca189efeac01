"""Realtime - table change notifications"""
from .change_feed import ChangeFeed, Subscription, get_change_feed, close_change_feed

__all__ = [
    "ChangeFeed",
    "Subscription",
    "get_change_feed",
    "close_change_feed",
]
