"""
Unit tests for BroadcastHub
"""
from starlette.websockets import WebSocketState

from services.broadcast_service import BroadcastHub


class TestBroadcastHub:
    """Test viewer registration and fan-out"""

    async def test_broadcast_reaches_all_viewers(self, hub, viewer_factory):
        viewers = [viewer_factory() for _ in range(3)]

        delivered = await hub.broadcast("new_bubble", {"bubble": {"id": "b1"}})

        assert delivered == 3
        for v in viewers:
            assert v.messages == [{"type": "new_bubble", "bubble": {"id": "b1"}}]

    async def test_failed_viewer_is_dropped(self, hub, viewer_factory):
        healthy = viewer_factory()
        broken = viewer_factory(fail=True)

        delivered = await hub.broadcast("cleanup")

        assert delivered == 1
        assert healthy.messages == [{"type": "cleanup"}]
        assert broken not in hub.viewers
        assert hub.viewer_count == 1

    async def test_closed_viewer_is_dropped_without_send(self, hub, viewer_factory):
        closed = viewer_factory()
        closed.client_state = WebSocketState.DISCONNECTED

        delivered = await hub.broadcast("cleanup")

        assert delivered == 0
        assert closed.messages == []
        assert hub.viewer_count == 0

    async def test_broadcast_with_no_viewers(self):
        assert await BroadcastHub().broadcast("cleanup") == 0

    async def test_decay_tick_has_no_payload(self, hub, viewer):
        await hub.decay_tick()

        assert viewer.messages == [{"type": "decay_tick"}]

    def test_unregister_is_idempotent(self, hub, viewer):
        hub.unregister(viewer)
        hub.unregister(viewer)

        assert hub.viewer_count == 0
        assert hub.get_stats() == {"active_viewers": 0}

    def test_register_twice_counts_once(self, hub, viewer):
        hub.register(viewer)

        assert hub.get_stats() == {"active_viewers": 1}
