"""
Service wiring and FastAPI dependencies.

`build_container` constructs every service once from the settings; the
application stores the result on `app.state.container` during its lifespan and
the dependency functions below hand the pieces to the endpoints.
"""

from dataclasses import dataclass

from fastapi import Depends, Request

from core.config import Settings
from core.database import Database
from core.fingerprint import HeaderFingerprintProvider, IdentityProvider, RequestMetadata
from providers.event_provider import AMSTERDAM_VENUE_COORDINATES, default_event_sources
from providers.media_provider import LocalMediaStorage
from providers.venue_provider import NominatimVenueResolver, StaticVenueResolver, VenueResolver
from services.broadcast_service import BroadcastHub
from services.bubble_service import BubbleService
from services.importer_service import BotImporterService
from services.scheduler_service import PeriodicTask, SchedulerService
from services.suggestion_service import SuggestionService

SWEEP_TASK = "expiry_sweep"
IMPORT_TASK = "bot_import"
DECAY_TASK = "decay_tick"


@dataclass
class ServiceContainer:
    settings: Settings
    database: Database
    hub: BroadcastHub
    identity_provider: IdentityProvider
    media_storage: LocalMediaStorage
    bubble_service: BubbleService
    suggestion_service: SuggestionService
    importer: BotImporterService
    scheduler: SchedulerService


def build_venue_resolver(settings: Settings) -> VenueResolver:
    if settings.GEOCODER == "static":
        return StaticVenueResolver(AMSTERDAM_VENUE_COORDINATES)
    return NominatimVenueResolver()


def build_container(settings: Settings) -> ServiceContainer:
    database = Database(settings.DATABASE_URL)
    hub = BroadcastHub()

    bubble_service = BubbleService(
        database,
        hub,
        retention_hours=settings.RETENTION_HOURS,
        dedup_epsilon=settings.DEDUP_EPSILON_DEGREES,
    )
    suggestion_service = SuggestionService(
        database, hub, title_min_length=settings.SUGGESTION_TITLE_MIN_LENGTH
    )
    importer = BotImporterService(
        bubble_service,
        hub,
        default_event_sources(build_venue_resolver(settings), settings.GEOCODER_CITY),
        source_timeout=settings.SOURCE_TIMEOUT_SECONDS,
    )

    scheduler = SchedulerService()
    scheduler.add_task(
        PeriodicTask(SWEEP_TASK, bubble_service.sweep_expired, settings.SWEEP_INTERVAL_SECONDS)
    )
    scheduler.add_task(
        PeriodicTask(
            IMPORT_TASK,
            importer.run_import_cycle,
            settings.IMPORT_INTERVAL_SECONDS,
            initial_delay=settings.IMPORT_STARTUP_DELAY_SECONDS,
        )
    )
    scheduler.add_task(PeriodicTask(DECAY_TASK, hub.decay_tick, settings.DECAY_TICK_SECONDS))

    return ServiceContainer(
        settings=settings,
        database=database,
        hub=hub,
        identity_provider=HeaderFingerprintProvider(),
        media_storage=LocalMediaStorage(
            settings.uploads_path, settings.MEDIA_URL_PREFIX, settings.MAX_UPLOAD_BYTES
        ),
        bubble_service=bubble_service,
        suggestion_service=suggestion_service,
        importer=importer,
        scheduler=scheduler,
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_bubble_service(container: ServiceContainer = Depends(get_container)) -> BubbleService:
    return container.bubble_service


def get_suggestion_service(
    container: ServiceContainer = Depends(get_container),
) -> SuggestionService:
    return container.suggestion_service


def get_importer(container: ServiceContainer = Depends(get_container)) -> BotImporterService:
    return container.importer


def get_media_storage(container: ServiceContainer = Depends(get_container)) -> LocalMediaStorage:
    return container.media_storage


def get_identity(request: Request, container: ServiceContainer = Depends(get_container)) -> str:
    """Fingerprint of the calling client"""
    return container.identity_provider.identify(RequestMetadata.from_connection(request))
