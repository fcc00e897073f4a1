"""SQLAlchemy models for the face identity service."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class IdentityRow(Base):
    """Registered or quarantined identity."""

    __tablename__ = "identities"
    __table_args__ = (
        Index("idx_identities_role_seq", "role", "seq"),
        UniqueConstraint("contact", name="uq_identities_contact"),
        UniqueConstraint("registered_name", name="uq_identities_registered_name"),
    )

    # Monotonic insertion order, used for scan order and tie-breaking
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        comment="Email-like handle; placeholders for quarantined identities"
    )
    registered_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="Display name of registered identities only; NULL for quarantines"
    )
    avatar_ref: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    descriptor: Mapped[List[float]] = mapped_column(
        JSON,
        nullable=False,
        comment="Descriptor of record"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    attempts: Mapped[List["AttemptRow"]] = relationship(
        back_populates="identity",
        order_by="AttemptRow.seq",
    )


class AttemptRow(Base):
    """Audit record of one verification encounter.

    Rows outlive their identity: deleting an identity detaches its records and
    promotion re-attaches them to the new identity.
    """

    __tablename__ = "attempt_records"
    __table_args__ = (
        Index("idx_attempt_records_identity", "identity_id", "seq"),
    )

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    record_id: Mapped[str] = mapped_column(String(36), unique=True, nullable=False)
    identity_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("identities.id", ondelete="SET NULL"),
        nullable=True
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    outcome: Mapped[str] = mapped_column(String(16), nullable=False)
    descriptor_snapshot: Mapped[List[float]] = mapped_column(JSON, nullable=False)

    # Relationships
    identity: Mapped[Optional[IdentityRow]] = relationship(
        back_populates="attempts"
    )
