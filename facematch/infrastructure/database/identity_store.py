"""SQLAlchemy implementation of the identity store."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

import numpy as np
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from facematch.core.exceptions import IdentityStoreError
from facematch.core.logging import get_logger
from facematch.domain.entities.face import BoundingBox, Identity
from facematch.domain.interfaces.storage.identity_store import IdentityStore
from facematch.infrastructure.database.models import IdentityRecord
from facematch.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


def _namespace_key(namespace: Optional[str]) -> str:
    """Stored form of a namespace; the global namespace is the empty string."""
    return namespace or ""


def _to_identity(record: IdentityRecord) -> Identity:
    return Identity(
        identity_id=record.identity_id,
        namespace=record.namespace or None,
        samples=record.samples,
        thumbnail_ref=record.thumbnail_ref,
        photo_count=record.photo_count,
        last_seen=record.last_seen
    )


class SqlAlchemyIdentityStore(IdentityStore):
    """Identity store backed by a SQL database.

    Every operation runs in its own unit of work and is committed before
    the call returns, so the next read sees it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the store.

        Args:
            session_factory: Factory for async database sessions
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _unit_of_work(self, operation: str, **context) -> AsyncGenerator[UnitOfWork, None]:
        """Open a committed unit of work, wrapping database errors."""
        try:
            async with self._session_factory() as session:
                async with UnitOfWork(session) as uow:
                    yield uow
        except IdentityStoreError:
            raise
        except IntegrityError as e:
            logger.error("Identity store constraint violated", operation=operation, error=str(e), **context)
            raise IdentityStoreError(
                f"Identity store rejected {operation}: identity already exists",
                details=context
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                "Identity store operation failed",
                operation=operation,
                error=str(e),
                exc_info=True,
                **context
            )
            raise IdentityStoreError(f"Identity store {operation} failed: {e}", details=context) from e

    async def list_identities(self, namespace: Optional[str] = None) -> List[Identity]:
        async with self._unit_of_work("list", namespace=namespace) as uow:
            records = await uow.identities.list_by_namespace(_namespace_key(namespace))
            return [_to_identity(record) for record in records]

    async def append_sample(
        self,
        identity_id: str,
        embedding: np.ndarray,
        box: BoundingBox,
        namespace: Optional[str] = None,
    ) -> Identity:
        async with self._unit_of_work("append", identity_id=identity_id, namespace=namespace) as uow:
            record = await uow.identities.append_sample(
                _namespace_key(namespace),
                identity_id,
                np.asarray(embedding, dtype=float).tolist(),
                box.model_dump()
            )
            identity = _to_identity(record)

        logger.debug(
            "Appended identity sample",
            identity_id=identity_id,
            namespace=namespace,
            samples=identity.sample_count
        )
        return identity

    async def create_identity(
        self,
        identity_id: str,
        embedding: np.ndarray,
        box: BoundingBox,
        namespace: Optional[str] = None,
    ) -> Identity:
        async with self._unit_of_work("create", identity_id=identity_id, namespace=namespace) as uow:
            record = await uow.identities.create(
                _namespace_key(namespace),
                identity_id,
                np.asarray(embedding, dtype=float).tolist(),
                box.model_dump()
            )
            identity = _to_identity(record)

        logger.debug("Created identity", identity_id=identity_id, namespace=namespace)
        return identity

    async def set_thumbnail(
        self,
        identity_id: str,
        thumbnail_ref: str,
        namespace: Optional[str] = None,
    ) -> None:
        async with self._unit_of_work("set_thumbnail", identity_id=identity_id, namespace=namespace) as uow:
            await uow.identities.set_thumbnail(_namespace_key(namespace), identity_id, thumbnail_ref)
