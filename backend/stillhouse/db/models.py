"""
Stillhouse Ledger - SQLAlchemy ORM Models
Database schema for containers, kinds and the transaction ledger
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from stillhouse.models.container import AccountType, ContainerStatus, ContainerType
from stillhouse.models.transaction import TransactionType


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class ContainerKindRow(Base):
    """Vessel templates: capacity and tare weight."""

    __tablename__ = "container_kinds"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    container_type: Mapped[ContainerType] = mapped_column(
        SQLEnum(ContainerType, name="container_type"), nullable=False
    )
    capacity_gallons: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4))
    tare_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4))
    description: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("capacity_gallons IS NULL OR capacity_gallons >= 0", name="kinds_capacity_non_negative"),
        Index("idx_container_kinds_owner", "owner_id"),
    )


class ContainerRow(Base):
    """Current physical state of each vessel."""

    __tablename__ = "containers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    kind_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("container_kinds.id"), nullable=False
    )
    name: Mapped[Optional[str]] = mapped_column(String(255))
    account: Mapped[AccountType] = mapped_column(
        SQLEnum(AccountType, name="account_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AccountType.STORAGE,
    )

    net_weight: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    tare_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 4))
    proof: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 4))
    temperature_fahrenheit: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2))
    status: Mapped[ContainerStatus] = mapped_column(
        SQLEnum(ContainerStatus, name="container_status"),
        nullable=False,
        default=ContainerStatus.EMPTY,
    )

    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    fill_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("net_weight >= 0", name="containers_weight_non_negative"),
        CheckConstraint("proof IS NULL OR (proof >= 0 AND proof <= 200)", name="containers_proof_range"),
        Index("idx_containers_owner", "owner_id"),
        Index("idx_containers_kind", "kind_id"),
    )


class TransactionRow(Base):
    """
    Append-only ledger.

    container_id carries no foreign key: entries outlive the containers
    they describe.
    """

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SQLEnum(TransactionType, name="transaction_type"), nullable=False
    )
    container_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    product_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))

    proof: Mapped[Optional[Decimal]] = mapped_column(Numeric(8, 4))
    volume_gallons: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    proof_gallons: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    temperature_fahrenheit: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_transactions_owner_created", "owner_id", "created_at"),
        Index("idx_transactions_container", "container_id", "created_at"),
        Index("idx_transactions_type", "transaction_type"),
    )
