"""Process-wide live state: the change feed and the merged device collection."""

import logging

from cropwatch.database import async_session
from cropwatch.live.feed import ChangeFeed, Subscription
from cropwatch.live.merge import DeviceCollection, LiveMerge, SessionFactory
from cropwatch.services.device_service import load_initial_app_state

logger = logging.getLogger(__name__)


class LiveHub:
    """Feed + collection + merge, hydrated from the first device page on start."""

    def __init__(self, session_factory: SessionFactory = async_session) -> None:
        self.session_factory = session_factory
        self.feed = ChangeFeed()
        self.devices = DeviceCollection()
        self.merge = LiveMerge(session_factory, self.devices)
        self._subscription: Subscription | None = None

    @property
    def running(self) -> bool:
        return self._subscription is not None

    async def start(self) -> None:
        if self._subscription is not None:
            return
        async with self.session_factory() as session:
            state = await load_initial_app_state(session)
        self.devices.replace_all(state.devices)
        self._subscription = self.merge.start(self.feed)
        logger.info(f"Live hub started with {len(self.devices)} devices")

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
            logger.info("Live hub stopped")

    async def drain(self) -> None:
        """Wait for all published events to be merged."""
        if self._subscription is not None:
            await self._subscription.drain()


_hub: LiveHub | None = None


def get_live_hub() -> LiveHub:
    """Dependency returning the process-wide hub, created on first use."""
    global _hub
    if _hub is None:
        _hub = LiveHub()
    return _hub
