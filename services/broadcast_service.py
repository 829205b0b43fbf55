"""
Real-time Broadcast Hub.

This module provides the `BroadcastHub`, which keeps the set of connected live
viewers (WebSocket clients of the map) and fans state-change events out to
them.

Key Components:
- `BroadcastHub.register` / `unregister`: Add and remove viewers. Unregistering
  an unknown viewer is a no-op.
- `BroadcastHub.broadcast`: Serializes an event once and sends it to every
  viewer that is still open. A viewer whose send fails, or which is no longer
  open, is dropped from the set; failed sends are never retried.
- Event kinds: `new_bubble`, `update_bubble`, `cleanup` (viewers refetch the
  visible set), `decay_tick` (payload-free heartbeat that makes viewers
  re-render decay visuals), `new_suggestion` and `update_suggestion`.

Architectural Design:
- In-Memory State: The viewer set lives in the process. This is suitable for
  a single-instance deployment only.
- Explicit Ownership: The hub is constructed once by the application and
  passed to the services that emit events. Only the hub mutates the viewer
  set.
"""

import json
import logging
from typing import Any, Dict, Optional, Protocol, Set

from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

NEW_BUBBLE = "new_bubble"
UPDATE_BUBBLE = "update_bubble"
CLEANUP = "cleanup"
DECAY_TICK = "decay_tick"
NEW_SUGGESTION = "new_suggestion"
UPDATE_SUGGESTION = "update_suggestion"


class Viewer(Protocol):
    """Anything that looks like a Starlette WebSocket"""

    client_state: WebSocketState
    application_state: WebSocketState

    async def send_text(self, data: str) -> None: ...


def _is_open(viewer: Viewer) -> bool:
    return (
        getattr(viewer, "client_state", WebSocketState.CONNECTED)
        == WebSocketState.CONNECTED
        and getattr(viewer, "application_state", WebSocketState.CONNECTED)
        == WebSocketState.CONNECTED
    )


class BroadcastHub:
    """Fan-out of state-change events to all connected viewers"""

    def __init__(self):
        self.viewers: Set[Viewer] = set()

    def register(self, viewer: Viewer) -> None:
        self.viewers.add(viewer)
        logger.info(f"Viewer connected ({len(self.viewers)} active)")

    def unregister(self, viewer: Viewer) -> None:
        if viewer in self.viewers:
            self.viewers.discard(viewer)
            logger.info(f"Viewer disconnected ({len(self.viewers)} active)")

    @property
    def viewer_count(self) -> int:
        return len(self.viewers)

    async def broadcast(self, event_type: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """
        Send `{"type": event_type, **payload}` to every open viewer.

        Returns:
            int: Number of viewers the event was delivered to
        """
        message = json.dumps({"type": event_type, **(payload or {})}, default=str)
        delivered = 0

        for viewer in list(self.viewers):
            if not _is_open(viewer):
                self.viewers.discard(viewer)
                continue
            try:
                await viewer.send_text(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping viewer after failed {event_type} send: {e}")
                self.viewers.discard(viewer)

        logger.debug(
            f"Broadcast {event_type} to {delivered} viewers",
            extra={"event_type": event_type, "delivered": delivered},
        )
        return delivered

    async def decay_tick(self) -> int:
        """Heartbeat that prompts viewers to re-render decay visuals"""
        return await self.broadcast(DECAY_TICK)

    def get_stats(self) -> Dict[str, Any]:
        return {"active_viewers": len(self.viewers)}
