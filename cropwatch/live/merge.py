"""Live merge: folds device change events into an ordered device collection.

For each event the merge resolves the device's type and location through
injected :class:`ReferenceCache` instances, normalizes the row with the
same normalizer the listing path uses, then replaces the device in place
(known id) or prepends it (new id). Every merge is announced on the open
update channels.

Two events for the same device whose lookups finish out of order are
applied in completion order, last writer wins. The collection mutation
itself never spans an await.
"""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from cropwatch.config import REFERENCE_CACHE_SIZE, REFERENCE_CACHE_TTL_SECONDS
from cropwatch.live.cache import ReferenceCache
from cropwatch.live.feed import DEVICES_TABLE, ChangeEvent, ChangeFeed, Subscription
from cropwatch.schemas import DeviceRecord
from cropwatch.services.device_service import get_device_type_row, get_location_row
from cropwatch.services.normalizer import normalize_device

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]
MergeAction = Literal["inserted", "updated"]


@dataclass(frozen=True)
class MergeResult:
    action: MergeAction
    index: int
    device: DeviceRecord

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "index": self.index,
            "device": self.device.model_dump(mode="json", by_alias=True),
        }


class DeviceCollection:
    """Ordered devices, unique by id. The backing list is rebuilt on every change."""

    def __init__(self, devices: Iterable[DeviceRecord] = ()) -> None:
        self._devices: list[DeviceRecord] = []
        self.replace_all(devices)

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self):
        return iter(self._devices)

    def __contains__(self, dev_eui: str) -> bool:
        return self.index_of(dev_eui) is not None

    @property
    def snapshot(self) -> list[DeviceRecord]:
        return list(self._devices)

    def get(self, dev_eui: str) -> DeviceRecord | None:
        index = self.index_of(dev_eui)
        return self._devices[index] if index is not None else None

    def index_of(self, dev_eui: str) -> int | None:
        for index, device in enumerate(self._devices):
            if device.id == dev_eui:
                return index
        return None

    def replace_all(self, devices: Iterable[DeviceRecord]) -> None:
        """Reset the collection, keeping the first occurrence of each id."""
        seen: set[str] = set()
        rebuilt = []
        for device in devices:
            if device.id not in seen:
                seen.add(device.id)
                rebuilt.append(device)
        self._devices = rebuilt

    def merge(self, device: DeviceRecord) -> MergeResult:
        """Replace a known device where it sits, or put a new one first."""
        current = self._devices
        index = self.index_of(device.id)
        if index is not None:
            self._devices = [*current[:index], device, *current[index + 1 :]]
            return MergeResult(action="updated", index=index, device=device)

        self._devices = [device, *current]
        return MergeResult(action="inserted", index=0, device=device)


class LiveMerge:
    """Applies change events to a :class:`DeviceCollection`."""

    def __init__(
        self,
        session_factory: SessionFactory,
        devices: DeviceCollection,
        device_types: ReferenceCache | None = None,
        locations: ReferenceCache | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.devices = devices
        if device_types is None:
            device_types = ReferenceCache(REFERENCE_CACHE_SIZE, REFERENCE_CACHE_TTL_SECONDS)
        if locations is None:
            locations = ReferenceCache(REFERENCE_CACHE_SIZE, REFERENCE_CACHE_TTL_SECONDS)
        self.device_types = device_types
        self.locations = locations
        self._clock = clock
        self._channels: set[asyncio.Queue] = set()

    # --- Update channels ---

    def open_channel(self) -> asyncio.Queue:
        """Queue that receives a MergeResult for every merge from now on."""
        channel: asyncio.Queue = asyncio.Queue()
        self._channels.add(channel)
        return channel

    def close_channel(self, channel: asyncio.Queue) -> None:
        self._channels.discard(channel)

    def _emit(self, result: MergeResult) -> None:
        for channel in list(self._channels):
            channel.put_nowait(result)

    # --- Reference lookups ---

    async def _load_device_type(self, type_id: Any) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            return await get_device_type_row(session, type_id)

    async def _load_location(self, location_id: Any) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            return await get_location_row(session, location_id)

    async def _resolve(
        self, cache: ReferenceCache, key: Any, loader, what: str
    ) -> dict[str, Any] | None:
        if key is None:
            return None
        try:
            value = await cache.get_or_load(key, loader)
        except Exception:
            logger.warning(
                f"Failed to load {what} {key!r}; merging without it", exc_info=True
            )
            return None
        if value is None:
            logger.warning(f"{what.capitalize()} {key!r} not found; merging without it")
        return value

    # --- Events ---

    async def handle_event(self, event: ChangeEvent) -> MergeResult | None:
        """Normalize the event's row and merge it. Returns None for ignored events."""
        if event.table != DEVICES_TABLE or event.type not in ("INSERT", "UPDATE"):
            return None

        row = event.record
        dev_eui = row.get("dev_eui")
        if not dev_eui:
            logger.warning(f"Ignoring {event.type} event without dev_eui")
            return None

        device_type = await self._resolve(
            self.device_types, row.get("type"), self._load_device_type, "device type"
        )
        location = await self._resolve(
            self.locations, row.get("location_id"), self._load_location, "location"
        )

        now = self._clock() if self._clock else None
        device = normalize_device(row, device_type, location, now=now)

        result = self.devices.merge(device)
        logger.info(f"Live merge: {result.action} {dev_eui} at index {result.index}")
        self._emit(result)
        return result

    def start(self, feed: ChangeFeed) -> Subscription:
        """Subscribe to device changes; the returned subscription is the disposer."""
        return feed.subscribe(self.handle_event, table=DEVICES_TABLE)


def start_device_realtime(
    feed: ChangeFeed,
    devices: DeviceCollection,
    session_factory: SessionFactory,
    device_types: ReferenceCache | None = None,
    locations: ReferenceCache | None = None,
) -> tuple[LiveMerge, Subscription]:
    """Begin merging live device changes into ``devices``.

    Call the returned subscription to stop; until then it stays subscribed
    for the life of the feed.
    """
    merge = LiveMerge(session_factory, devices, device_types=device_types, locations=locations)
    return merge, merge.start(feed)
