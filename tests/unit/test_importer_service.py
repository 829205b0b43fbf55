"""
Unit tests for BotImporterService

Uses in-memory event sources so each failure mode can be triggered on demand.
"""
import asyncio
from typing import List

import pytest

from core.exceptions import SourceUnavailableError
from core.models import EventCandidate
from providers.event_provider import EventSource, VenueEventSource
from providers.venue_provider import StaticVenueResolver
from services.importer_service import BotImporterService


class ListEventSource(EventSource):
    def __init__(self, name: str, candidates: List[EventCandidate]):
        self.name = name
        self.candidates = candidates
        self.calls = 0

    @property
    def source_name(self) -> str:
        return self.name

    async def fetch_events(self) -> List[EventCandidate]:
        self.calls += 1
        return list(self.candidates)


class BrokenEventSource(ListEventSource):
    async def fetch_events(self) -> List[EventCandidate]:
        self.calls += 1
        raise ConnectionError("feed unreachable")


class HangingEventSource(ListEventSource):
    async def fetch_events(self) -> List[EventCandidate]:
        self.calls += 1
        await asyncio.sleep(10)
        return []


def candidate(title: str, source: str, lat: float = 52.37, lng: float = 4.90) -> EventCandidate:
    return EventCandidate(title=title, lat=lat, lng=lng, bot_source=source)


class TestBotImporterService:
    """Test import cycles"""

    async def test_import_cycle_imports_all_sources(self, bubble_service, hub, viewer):
        sources = [
            ListEventSource("eventbrite", [candidate("DJ Set @ Paradiso", "eventbrite")]),
            ListEventSource("student", [candidate("Quiz Night @ CREA", "student", lat=52.36)]),
        ]
        importer = BotImporterService(bubble_service, hub, sources)

        report = await importer.run_import_cycle()

        assert report.imported == 2
        assert report.skipped == 0
        assert report.failed_sources == []
        assert len(await bubble_service.list_visible()) == 2
        assert viewer.types() == ["new_bubble", "new_bubble", "cleanup"]

    async def test_second_cycle_skips_duplicates(self, bubble_service, hub, viewer):
        source = ListEventSource("eventbrite", [candidate("DJ Set @ Paradiso", "eventbrite")])
        importer = BotImporterService(bubble_service, hub, [source])

        await importer.run_import_cycle()
        report = await importer.run_import_cycle()

        assert report.imported == 0
        assert report.skipped == 1
        assert len(await bubble_service.list_visible()) == 1
        # Nothing new, so no second refresh signal
        assert viewer.types().count("cleanup") == 1

    async def test_failing_source_does_not_stop_cycle(self, bubble_service, hub):
        broken = BrokenEventSource("eventbrite", [])
        healthy = ListEventSource("community", [candidate("Book Club @ Pllek", "community")])
        importer = BotImporterService(bubble_service, hub, [broken, healthy])

        report = await importer.run_import_cycle()

        assert healthy.calls == 1
        assert report.imported == 1
        assert report.failed_sources == ["eventbrite"]
        assert report.sources[0].error == "feed unreachable"

    async def test_timed_out_source_is_abandoned(self, bubble_service, hub):
        slow = HangingEventSource("student", [])
        healthy = ListEventSource("community", [candidate("Book Club @ Pllek", "community")])
        importer = BotImporterService(bubble_service, hub, [slow, healthy], source_timeout=0.05)

        report = await importer.run_import_cycle()

        assert report.failed_sources == ["student"]
        assert "timed out" in report.sources[0].error
        assert report.imported == 1

    async def test_report_to_dict(self, bubble_service, hub):
        importer = BotImporterService(
            bubble_service,
            hub,
            [
                ListEventSource("eventbrite", [candidate("DJ Set @ Paradiso", "eventbrite")]),
                BrokenEventSource("student", []),
            ],
        )

        data = (await importer.run_import_cycle()).to_dict()

        assert data["imported"] == 1
        assert data["failed_sources"] == ["student"]
        assert data["sources"][0] == {
            "source": "eventbrite",
            "imported": 1,
            "skipped": 0,
            "error": None,
        }

    async def test_source_without_venues_is_reported(self, bubble_service, hub):
        class EmptyVenueSource(VenueEventSource):
            venue_names = ["Nowhere Amsterdam"]
            event_types = ["Meetup"]

            @property
            def source_name(self) -> str:
                return "community"

        importer = BotImporterService(
            bubble_service, hub, [EmptyVenueSource(StaticVenueResolver({}))]
        )

        report = await importer.run_import_cycle()

        assert report.failed_sources == ["community"]
        assert "no venues resolved" in report.sources[0].error

    async def test_warm_up_resolves_venue_sources(self, bubble_service, hub):
        class TinySource(VenueEventSource):
            venue_names = ["Paradiso Amsterdam"]
            event_types = ["Meetup"]

            @property
            def source_name(self) -> str:
                return "eventbrite"

        source = TinySource(StaticVenueResolver({"Paradiso Amsterdam": (52.3622, 4.8838)}))
        importer = BotImporterService(
            bubble_service, hub, [source, ListEventSource("other", [])]
        )

        await importer.warm_up()

        assert [v.name for v in source._venues] == ["Paradiso"]

    async def test_empty_cycle_sends_no_cleanup(self, bubble_service, hub, viewer):
        importer = BotImporterService(bubble_service, hub, [ListEventSource("student", [])])

        report = await importer.run_import_cycle()

        assert report.imported == 0
        assert viewer.messages == []


def test_source_unavailable_error_shape():
    error = SourceUnavailableError("student", "no venues resolved")

    assert error.status_code == 503
    assert error.details == {"source": "student", "reason": "no venues resolved"}
    with pytest.raises(SourceUnavailableError):
        raise error
