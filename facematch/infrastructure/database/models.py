"""SQLAlchemy models for the identity store."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class IdentityRecord(Base):
    """Identity row holding the full sample history of one person in one namespace."""

    __tablename__ = "identities"
    __table_args__ = (
        UniqueConstraint('namespace', 'identity_id', name='uq_identities_namespace_identity'),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    namespace: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
        index=True,
        comment="Event identifier, empty string for the global namespace"
    )
    identity_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Human-readable identity identifier, e.g. person_3"
    )
    samples: Mapped[List[List[float]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Embedding samples, oldest first"
    )
    boxes: Mapped[List[Dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Bounding box of the face each sample came from"
    )
    thumbnail_ref: Mapped[Optional[str]] = mapped_column(
        String(1024),
        nullable=True,
        comment="Artifact reference of the identity preview"
    )
    photo_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow
    )
    last_seen: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
