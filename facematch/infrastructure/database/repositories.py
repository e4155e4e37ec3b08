"""Database repositories for the identity store."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from facematch.core.exceptions import IdentityNotFoundError
from facematch.infrastructure.database.models import IdentityRecord


class IdentityRepository:
    """Repository for identity operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def list_by_namespace(self, namespace: str) -> List[IdentityRecord]:
        """Get every identity of a namespace in creation order.

        Args:
            namespace: Stored namespace key, empty string for global

        Returns:
            List[IdentityRecord]: Found identities
        """
        stmt = (
            select(IdentityRecord)
            .where(IdentityRecord.namespace == namespace)
            .order_by(IdentityRecord.created_at, IdentityRecord.identity_id)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def find(self, namespace: str, identity_id: str) -> Optional[IdentityRecord]:
        """Get an identity by its identifier, or None."""
        stmt = select(IdentityRecord).where(
            IdentityRecord.namespace == namespace,
            IdentityRecord.identity_id == identity_id
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, namespace: str, identity_id: str) -> IdentityRecord:
        """Get an identity by its identifier.

        Raises:
            IdentityNotFoundError: If the identity does not exist in the namespace
        """
        record = await self.find(namespace, identity_id)
        if record is None:
            raise IdentityNotFoundError(
                f"Identity not found: {identity_id}",
                details={"identity_id": identity_id, "namespace": namespace or None}
            )
        return record

    async def create(
        self,
        namespace: str,
        identity_id: str,
        sample: List[float],
        box: Dict[str, Any],
    ) -> IdentityRecord:
        """Create an identity with its first sample.

        Returns:
            IdentityRecord: Created identity
        """
        now = datetime.now(timezone.utc)
        record = IdentityRecord(
            namespace=namespace,
            identity_id=identity_id,
            samples=[sample],
            boxes=[box],
            photo_count=1,
            created_at=now,
            last_seen=now
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def append_sample(
        self,
        namespace: str,
        identity_id: str,
        sample: List[float],
        box: Dict[str, Any],
    ) -> IdentityRecord:
        """Append a sample to an existing identity.

        Raises:
            IdentityNotFoundError: If the identity does not exist in the namespace
        """
        record = await self.get(namespace, identity_id)
        # JSON columns are replaced, not mutated, so the change is tracked
        record.samples = [*record.samples, sample]
        record.boxes = [*record.boxes, box]
        record.photo_count = record.photo_count + 1
        record.last_seen = datetime.now(timezone.utc)
        await self._session.flush()
        return record

    async def set_thumbnail(self, namespace: str, identity_id: str, thumbnail_ref: str) -> IdentityRecord:
        """Record the thumbnail reference of an identity.

        Raises:
            IdentityNotFoundError: If the identity does not exist in the namespace
        """
        record = await self.get(namespace, identity_id)
        record.thumbnail_ref = thumbnail_ref
        await self._session.flush()
        return record
