"""
Bot Content Importer.

This module provides the `BotImporterService`, which pulls candidate events
from every configured event source and turns them into bot bubbles through the
lifecycle engine.

Key Components:
- `run_import_cycle`: Visits each source in turn. A source is given
  `source_timeout` seconds to produce its batch; a source that raises, times
  out or has no resolved venues is logged and recorded in the report, and the
  cycle moves on to the next source. Partial success is the normal outcome.
- Deduplication: each candidate goes through
  `BubbleService.import_bot_bubble`, which skips candidates matching an
  existing bot bubble by title, source and position.
- `warm_up`: Resolves every source's venues ahead of the first cycle.
- `ImportReport` / `SourceReport`: Per-source counts of imported and skipped
  candidates plus the error, if any.

Architectural Design:
- Per-Source Isolation: failures are contained per source, following the same
  try-the-next-one approach the provider chains use.
- Refresh Signal: after a cycle that imported anything, a single `cleanup`
  event tells viewers to refetch the visible set, in addition to the
  `new_bubble` event emitted for each imported bubble.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from providers.event_provider import EventSource, VenueEventSource
from services.bubble_service import BubbleService
from services.broadcast_service import CLEANUP, BroadcastHub

logger = logging.getLogger(__name__)


@dataclass
class SourceReport:
    source: str
    imported: int = 0
    skipped: int = 0
    error: Optional[str] = None


@dataclass
class ImportReport:
    sources: List[SourceReport] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return sum(s.imported for s in self.sources)

    @property
    def skipped(self) -> int:
        return sum(s.skipped for s in self.sources)

    @property
    def failed_sources(self) -> List[str]:
        return [s.source for s in self.sources if s.error]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "failed_sources": self.failed_sources,
            "sources": [
                {
                    "source": s.source,
                    "imported": s.imported,
                    "skipped": s.skipped,
                    "error": s.error,
                }
                for s in self.sources
            ],
        }


class BotImporterService:
    """Imports candidate events from every source as bot bubbles"""

    def __init__(
        self,
        bubble_service: BubbleService,
        hub: BroadcastHub,
        sources: List[EventSource],
        source_timeout: float = 60.0,
    ):
        self.bubble_service = bubble_service
        self.hub = hub
        self.sources = sources
        self.source_timeout = source_timeout

    async def warm_up(self) -> None:
        """Resolve venues for every source so the first cycle has coordinates"""
        for source in self.sources:
            if not isinstance(source, VenueEventSource):
                continue
            try:
                await source.ensure_venues_resolved()
            except Exception as e:
                logger.error(f"Venue warm-up failed for {source.source_name}: {e}")

    async def _import_source(self, source: EventSource) -> SourceReport:
        report = SourceReport(source=source.source_name)

        try:
            candidates = await asyncio.wait_for(
                source.fetch_events(), timeout=self.source_timeout
            )
        except asyncio.TimeoutError:
            report.error = f"timed out after {self.source_timeout}s"
            logger.error(f"Event source {source.source_name} {report.error}")
            return report
        except Exception as e:
            report.error = str(e)
            logger.error(f"Event source {source.source_name} failed: {e}")
            return report

        for candidate in candidates:
            bubble = await self.bubble_service.import_bot_bubble(candidate)
            if bubble is None:
                report.skipped += 1
            else:
                report.imported += 1

        logger.info(
            f"Imported {report.imported} {source.source_name} events "
            f"({report.skipped} duplicates skipped)"
        )
        return report

    async def run_import_cycle(self) -> ImportReport:
        """Pull every source once and import the new events"""
        logger.info(f"Running import cycle over {len(self.sources)} sources")
        report = ImportReport()

        for source in self.sources:
            report.sources.append(await self._import_source(source))

        if report.imported > 0:
            await self.hub.broadcast(CLEANUP)

        logger.info(
            f"Import cycle finished: {report.imported} added, {report.skipped} skipped",
            extra={"failed_sources": report.failed_sources},
        )
        return report
