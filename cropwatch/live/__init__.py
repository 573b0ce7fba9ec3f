"""Realtime device updates: change feed, reference caches and live merge."""

from cropwatch.live.cache import ReferenceCache
from cropwatch.live.feed import ChangeEvent, ChangeFeed, Subscription
from cropwatch.live.hub import LiveHub, get_live_hub
from cropwatch.live.merge import DeviceCollection, LiveMerge, MergeResult, start_device_realtime

__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "DeviceCollection",
    "LiveHub",
    "LiveMerge",
    "MergeResult",
    "ReferenceCache",
    "Subscription",
    "get_live_hub",
    "start_device_realtime",
]
