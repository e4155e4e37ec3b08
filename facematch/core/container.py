"""Service container for dependency injection."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from facematch.core.config import settings
from facematch.core.exceptions import ServiceNotInitializedError
from facematch.core.logging import setup_logging
from facematch.domain.interfaces.storage.artifact_store import PhotoMetadataSink
from facematch.domain.interfaces.storage.identity_store import IdentityStore
from facematch.infrastructure.database.identity_store import SqlAlchemyIdentityStore
from facematch.infrastructure.database.session import create_engine, create_session_factory, create_tables
from facematch.services.aws.s3 import S3Service
from facematch.services.detection import DetectionOrchestrator
from facematch.services.id_allocation import IdAllocator
from facematch.services.identity_matching import IdentityMatcher
from facematch.services.photo_faces import PhotoFaceService
from facematch.services.recognition.insight_face import InsightFaceDetector
from facematch.services.reprocessing import ReprocessingService
from facematch.services.thumbnails import ThumbnailExtractor


class ServiceContainer:
    """Container for application services.

    This container manages the lifecycle and dependencies of all services in the application.
    It ensures proper initialization order and provides a single source of truth for service instances.

    Example:
        ```python
        container = ServiceContainer()
        await container.initialize()

        result = await container.photo_face_service.process_photo(image_bytes, namespace="event-1")
        ```
    """

    def __init__(self) -> None:
        """Initialize empty container."""
        self.engine: Optional[AsyncEngine] = None
        self.identity_store: Optional[IdentityStore] = None
        self.s3_service: Optional[S3Service] = None
        self.detection: Optional[DetectionOrchestrator] = None

        self.matcher: Optional[IdentityMatcher] = None
        self.thumbnails: Optional[ThumbnailExtractor] = None
        self.photo_face_service: Optional[PhotoFaceService] = None

    async def initialize(self, database_url: Optional[str] = None) -> None:
        """Initialize all services in the correct order."""
        setup_logging()

        self.engine = create_engine(database_url)
        await create_tables(self.engine)
        self.identity_store = SqlAlchemyIdentityStore(create_session_factory(self.engine))
        self.s3_service = S3Service()

        self.detection = DetectionOrchestrator([
            InsightFaceDetector(settings.FAST_DET_SIZE, settings.FAST_DET_THRESHOLD),
            InsightFaceDetector(settings.RECALL_DET_SIZE, settings.RECALL_DET_THRESHOLD),
        ])
        await self.detection.initialize()

        self.matcher = IdentityMatcher(self.identity_store, IdAllocator(self.identity_store))
        self.thumbnails = ThumbnailExtractor(self.s3_service, self.identity_store)
        self.photo_face_service = PhotoFaceService(
            detection=self.detection,
            matcher=self.matcher,
            identity_store=self.identity_store,
            thumbnails=self.thumbnails
        )

    def reprocessing_service(self, metadata_sink: PhotoMetadataSink) -> ReprocessingService:
        """Build a reprocessing service reporting to the caller's metadata sink."""
        if self.photo_face_service is None or self.s3_service is None:
            raise ServiceNotInitializedError("Service container is not initialized")
        return ReprocessingService(self.photo_face_service, self.s3_service, metadata_sink)

    async def cleanup(self) -> None:
        """Cleanup all services in reverse order of initialization."""
        self.photo_face_service = None
        self.thumbnails = None
        self.matcher = None
        self.detection = None
        self.s3_service = None
        self.identity_store = None

        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None


# Global container instance
container = ServiceContainer()
