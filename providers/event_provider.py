"""
Event Source Classes

Mock event feeds that produce candidate bot bubbles. Each source owns a list of
venue names, resolves them to coordinates once through a `VenueResolver`, and
then generates upcoming events at those venues.

Sources:
- `EventbriteEventSource`: nightlife and culture venues, events in the next
  7 days lasting 2-8 hours.
- `StudentEventSource`: student associations and university venues, next
  3 days, 1.5-5.5 hours.
- `CommunityEventSource`: co-working and community spaces, next 5 days,
  1-4 hours.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from core.exceptions import SourceUnavailableError
from core.models import EventCandidate, Venue, now_ms
from providers.venue_provider import VenueResolver

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000
JITTER_DEGREES = 0.0001  # About 10m, keeps markers at one venue from stacking

# Approximate coordinates, used when GEOCODER=static
AMSTERDAM_VENUE_COORDINATES: Dict[str, Tuple[float, float]] = {
    "Paradiso Amsterdam": (52.3622, 4.8838),
    "Melkweg Amsterdam": (52.3647, 4.8810),
    "De School Amsterdam": (52.3714, 4.8460),
    "AFAS Live Amsterdam": (52.3122, 4.9444),
    "Muziekgebouw aan 't IJ Amsterdam": (52.3783, 4.9128),
    "Ziggo Dome Amsterdam": (52.3136, 4.9372),
    "Tolhuistuin Amsterdam": (52.3847, 4.9023),
    "Shelter Amsterdam": (52.3843, 4.9021),
    "Bitterzoet Amsterdam": (52.3770, 4.8960),
    "OT301 Amsterdam": (52.3620, 4.8694),
    "Pakhuis de Zwijger Amsterdam": (52.3767, 4.9226),
    "UvA Roeterseiland Amsterdam": (52.3630, 4.9130),
    "UvA Science Park Amsterdam": (52.3550, 4.9550),
    "CREA Amsterdam": (52.3636, 4.9126),
    "Impact Hub Amsterdam": (52.3655, 4.9100),
    "Volkshotel Amsterdam": (52.3540, 4.9180),
    "De Ceuvel Amsterdam": (52.3870, 4.9130),
    "Ndsm Wharf Amsterdam": (52.4010, 4.8920),
    "Pllek Amsterdam": (52.4000, 4.8930),
    "Foodhallen Amsterdam": (52.3670, 4.8680),
    "Westergasfabriek Amsterdam": (52.3860, 4.8750),
    "A Lab Amsterdam": (52.3880, 4.9050),
}


class EventSource(ABC):
    """Abstract base class for event sources"""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Bot source tag stored on imported bubbles"""
        pass

    @abstractmethod
    async def fetch_events(self) -> List[EventCandidate]:
        """Produce the current batch of candidate events"""
        pass


class VenueEventSource(EventSource):
    """Generates mock events at lazily resolved venues"""

    venue_names: List[str] = []
    event_types: List[str] = []
    default_count: int = 10
    horizon_hours: float = 24
    duration_hours: Tuple[float, float] = (1, 4)
    caption_label: str = "Upcoming event"
    event_url: Optional[str] = None

    def __init__(
        self,
        resolver: VenueResolver,
        city: str = "Amsterdam",
        count: Optional[int] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self.resolver = resolver
        self.city = city
        self.count = count or self.default_count
        self.rng = rng or random.Random()
        self.clock = clock
        self._venues: List[Venue] = []
        self._resolve_lock = asyncio.Lock()

    async def ensure_venues_resolved(self) -> List[Venue]:
        """Resolve the venue list once and memoize it"""
        if self._venues:
            return self._venues

        async with self._resolve_lock:
            if self._venues:
                return self._venues

            logger.info(f"Resolving {len(self.venue_names)} {self.source_name} venues")
            venues = []
            for venue_name in self.venue_names:
                try:
                    location = await self.resolver.resolve(venue_name, self.city)
                except Exception as e:
                    logger.error(f"Failed to resolve {venue_name}: {e}")
                    continue
                if location:
                    venues.append(
                        Venue(
                            name=venue_name.replace(f" {self.city}", ""),
                            lat=location[0],
                            lng=location[1],
                        )
                    )

            logger.info(f"Resolved {len(venues)} {self.source_name} venues")
            self._venues = venues
            return self._venues

    def generate_events(self, venues: List[Venue]) -> List[EventCandidate]:
        """At most one event per venue, starting within the horizon"""
        now = self.clock()
        picked = self.rng.sample(venues, min(self.count, len(venues)))
        low, high = self.duration_hours

        events = []
        for venue in picked:
            event_type = self.rng.choice(self.event_types)
            start = now + int(self.rng.uniform(0, self.horizon_hours) * HOUR_MS)
            end = start + int(self.rng.uniform(low, high) * HOUR_MS)
            time_str = datetime.fromtimestamp(start / 1000).strftime("%a, %b %d, %I:%M %p")

            events.append(
                EventCandidate(
                    title=f"{event_type} @ {venue.name}",
                    caption=f"{time_str} • {self.caption_label}",
                    lat=venue.lat + self.rng.uniform(-JITTER_DEGREES, JITTER_DEGREES),
                    lng=venue.lng + self.rng.uniform(-JITTER_DEGREES, JITTER_DEGREES),
                    bot_source=self.source_name,
                    event_url=self.event_url,
                    event_date=start,
                    event_end_date=end,
                )
            )
        return events

    async def fetch_events(self) -> List[EventCandidate]:
        venues = await self.ensure_venues_resolved()
        if not venues:
            raise SourceUnavailableError(self.source_name, "no venues resolved")
        return self.generate_events(venues)


class EventbriteEventSource(VenueEventSource):
    venue_names = [
        "Paradiso Amsterdam",
        "Melkweg Amsterdam",
        "De School Amsterdam",
        "AFAS Live Amsterdam",
        "Muziekgebouw aan 't IJ Amsterdam",
        "Ziggo Dome Amsterdam",
        "Tolhuistuin Amsterdam",
        "Wonzimer Amsterdam",
        "De Marktkantine Amsterdam",
        "Canvas Amsterdam",
        "Shelter Amsterdam",
        "Claire Amsterdam",
        "Radion Amsterdam",
        "De Nieuwe Anita Amsterdam",
        "OT301 Amsterdam",
        "Bitterzoet Amsterdam",
        "AIR Amsterdam",
        "Chicago Social Club Amsterdam",
        "Chin Chin Club Amsterdam",
        "De Duivel Amsterdam",
    ]
    event_types = [
        "Live Music",
        "DJ Set",
        "Techno Night",
        "Jazz Session",
        "Stand-up Comedy",
        "Art Exhibition",
        "Food Market",
        "Meetup",
        "Workshop",
        "Film Screening",
        "Poetry Slam",
        "Open Mic Night",
        "Dance Performance",
        "Indie Concert",
        "Hip Hop Night",
    ]
    default_count = 15
    horizon_hours = 7 * 24
    duration_hours = (2, 8)
    caption_label = "Upcoming event in Amsterdam"
    event_url = "https://www.eventbrite.com/"

    @property
    def source_name(self) -> str:
        return "eventbrite"


class StudentEventSource(VenueEventSource):
    venue_names = [
        "CREA Amsterdam",
        "ASVA Student Union Amsterdam",
        "USC Amsterdam",
        "VU Student Centre Amsterdam",
        "UvA Roeterseiland Amsterdam",
        "UvA Science Park Amsterdam",
        "Pakhuis de Zwijger Amsterdam",
        "Studio K Amsterdam",
        "Mezrab Amsterdam",
        "Aula UvA Amsterdam",
    ]
    event_types = [
        "Study Session",
        "Student Party",
        "Board Game Night",
        "Quiz Night",
        "Pub Crawl",
        "Language Exchange",
        "Workshop",
        "Career Fair",
        "Guest Lecture",
        "Open Mic",
        "Movie Night",
        "Debate Night",
        "Networking Drinks",
        "Sports Tournament",
        "Volunteer Day",
    ]
    default_count = 8
    horizon_hours = 3 * 24
    duration_hours = (1.5, 5.5)
    caption_label = "Student event"
    event_url = "https://www.facebook.com/events/"

    @property
    def source_name(self) -> str:
        return "student"


class CommunityEventSource(VenueEventSource):
    venue_names = [
        "Impact Hub Amsterdam",
        "Spaces Vijzelstraat Amsterdam",
        "B. Amsterdam",
        "Volkshotel Amsterdam",
        "A Lab Amsterdam",
        "De Ceuvel Amsterdam",
        "Mediamatic Amsterdam",
        "Het HEM Amsterdam",
        "Pllek Amsterdam",
        "Ndsm Wharf Amsterdam",
        "Foodhallen Amsterdam",
        "Westergasfabriek Amsterdam",
    ]
    event_types = [
        "Tech Meetup",
        "Startup Pitch Night",
        "Yoga Session",
        "Meditation Circle",
        "Cooking Workshop",
        "Photography Walk",
        "Book Club",
        "Running Club",
        "Chess Meetup",
        "Boardgame Cafe",
        "Knitting Circle",
        "Language Cafe",
        "Improv Workshop",
        "Bitcoin Meetup",
        "Sustainability Talk",
    ]
    default_count = 8
    horizon_hours = 5 * 24
    duration_hours = (1, 4)
    caption_label = "Community event"
    event_url = "https://www.meetup.com/"

    @property
    def source_name(self) -> str:
        return "community"


def default_event_sources(resolver: VenueResolver, city: str = "Amsterdam") -> List[EventSource]:
    return [
        EventbriteEventSource(resolver, city),
        StudentEventSource(resolver, city),
        CommunityEventSource(resolver, city),
    ]
