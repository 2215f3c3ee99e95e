"""SQLAlchemy ORM models for the RE-CRM platform."""
from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base
from core.utils import new_id, utcnow


# =============================================================================
# Enums
# =============================================================================


class Role(str, enum.Enum):
    """User roles."""
    ADMIN = "ADMIN"
    AGENT = "AGENT"


class LeadSource(str, enum.Enum):
    """Where a client first came from."""
    INSTAGRAM = "INSTAGRAM"
    FACEBOOK = "FACEBOOK"
    TIKTOK = "TIKTOK"
    REFERRAL = "REFERRAL"
    PORTAL = "PORTAL"
    OTHER = "OTHER"


class ClientStatus(str, enum.Enum):
    """Client lifecycle status. Transitions are advisory."""
    NEW = "NEW"
    ACTIVE = "ACTIVE"
    NOT_INTERESTED = "NOT_INTERESTED"
    CONVERTED = "CONVERTED"
    LOST = "LOST"


class PropertyStatus(str, enum.Enum):
    """Listing status."""
    ACTIVE = "ACTIVE"
    UNDER_OFFER = "UNDER_OFFER"
    RENTED = "RENTED"
    SOLD = "SOLD"
    ARCHIVED = "ARCHIVED"


class Currency(str, enum.Enum):
    ILS = "ILS"
    USD = "USD"


class DealStage(str, enum.Enum):
    """Deal pipeline stages, in board order."""
    NEW_LEAD = "NEW_LEAD"
    NEGOTIATION = "NEGOTIATION"
    VIEWING = "VIEWING"
    CONTRACT = "CONTRACT"
    CLOSED = "CLOSED"


# Board column order
STAGES: tuple[str, ...] = tuple(stage.value for stage in DealStage)


class TaskPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TaskStatus(str, enum.Enum):
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class ActivityType(str, enum.Enum):
    """Activity log entry types."""
    NOTE = "NOTE"
    CALL = "CALL"
    MEETING = "MEETING"
    EMAIL = "EMAIL"
    STAGE_CHANGE = "STAGE_CHANGE"
    TASK_CREATED = "TASK_CREATED"
    DEAL_CREATED = "DEAL_CREATED"
    STATUS_CHANGE = "STATUS_CHANGE"


# =============================================================================
# User Model
# =============================================================================


class User(Base):
    """An agent or administrator who can log in."""
    __tablename__ = "user"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(10), default=Role.AGENT.value, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


# =============================================================================
# Client Model
# =============================================================================


class Client(Base):
    """A lead, buyer or seller."""
    __tablename__ = "client"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    lead_source: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=ClientStatus.NEW.value, nullable=False)
    assigned_to: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"), nullable=False, index=True)
    # Insertion order is significant
    tags: Mapped[list] = mapped_column(JSON, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    agent: Mapped["User"] = relationship("User")
    deals: Mapped[list["Deal"]] = relationship(
        "Deal", back_populates="client", cascade="all, delete-orphan", order_by="Deal.created_at.desc()"
    )
    tasks: Mapped[list["Task"]] = relationship("Task", back_populates="related_client")
    activities: Mapped[list["Activity"]] = relationship(
        "Activity", back_populates="client", order_by="Activity.created_at.desc()"
    )
    owned_properties: Mapped[list["Property"]] = relationship("Property", back_populates="owner")

    __table_args__ = (
        Index("ix_client_assigned_status", "assigned_to", "status"),
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name={self.full_name}, status={self.status})>"


# =============================================================================
# Property Model
# =============================================================================


class Property(Base):
    """A listing for sale or rent. Shared inventory, not owned by an agent."""
    __tablename__ = "property"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(500), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default=Currency.ILS.value, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default=PropertyStatus.ACTIVE.value, nullable=False)
    rooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    size_sqm: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    floor: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    owner_client_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("client.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    owner: Mapped[Optional["Client"]] = relationship("Client", back_populates="owned_properties")
    photos: Mapped[list["PropertyPhoto"]] = relationship(
        "PropertyPhoto",
        back_populates="property",
        cascade="all, delete-orphan",
        order_by="PropertyPhoto.created_at",
    )
    deals: Mapped[list["Deal"]] = relationship("Deal", back_populates="property")
    tasks: Mapped[list["Task"]] = relationship("Task", back_populates="related_property")

    __table_args__ = (
        Index("ix_property_status_price", "status", "price"),
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, title={self.title})>"


class PropertyPhoto(Base):
    """An uploaded photo; `url` is the public path under the uploads mount."""
    __tablename__ = "property_photo"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("property.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url: Mapped[str] = mapped_column(String(500), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    property: Mapped["Property"] = relationship("Property", back_populates="photos")


# =============================================================================
# Deal Model
# =============================================================================


class Deal(Base):
    """A potential transaction for a client, moving through the pipeline."""
    __tablename__ = "deal"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    client_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("client.id", ondelete="CASCADE"), nullable=False, index=True
    )
    property_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("property.id", ondelete="SET NULL"), nullable=True
    )
    stage: Mapped[str] = mapped_column(String(20), default=DealStage.NEW_LEAD.value, nullable=False, index=True)
    value: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    probability: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    assigned_to: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"), nullable=False, index=True)
    next_action_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    lost_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    client: Mapped["Client"] = relationship("Client", back_populates="deals")
    property: Mapped[Optional["Property"]] = relationship("Property", back_populates="deals")
    agent: Mapped["User"] = relationship("User")
    tasks: Mapped[list["Task"]] = relationship("Task", back_populates="related_deal")
    activities: Mapped[list["Activity"]] = relationship(
        "Activity", back_populates="deal", order_by="Activity.created_at.desc()"
    )

    def __repr__(self) -> str:
        return f"<Deal(id={self.id}, client_id={self.client_id}, stage={self.stage})>"


# =============================================================================
# Task Model
# =============================================================================


class Task(Base):
    """A follow-up task for an agent."""
    __tablename__ = "task"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    priority: Mapped[str] = mapped_column(String(10), default=TaskPriority.MEDIUM.value, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TaskStatus.TODO.value, nullable=False)
    assigned_to: Mapped[str] = mapped_column(String(36), ForeignKey("user.id"), nullable=False, index=True)
    related_client_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("client.id", ondelete="SET NULL"), nullable=True
    )
    related_deal_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("deal.id", ondelete="SET NULL"), nullable=True
    )
    related_property_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("property.id", ondelete="SET NULL"), nullable=True
    )
    reminder_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    agent: Mapped["User"] = relationship("User")
    related_client: Mapped[Optional["Client"]] = relationship("Client", back_populates="tasks")
    related_deal: Mapped[Optional["Deal"]] = relationship("Deal", back_populates="tasks")
    related_property: Mapped[Optional["Property"]] = relationship("Property", back_populates="tasks")

    __table_args__ = (
        Index("ix_task_assigned_status_due", "assigned_to", "status", "due_at"),
    )

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title={self.title}, status={self.status})>"


# =============================================================================
# Activity Model
# =============================================================================


class Activity(Base):
    """An append-only log entry attached to a client and/or deal."""
    __tablename__ = "activity"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("user.id"), nullable=True, index=True)
    client_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("client.id", ondelete="SET NULL"), nullable=True, index=True
    )
    deal_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("deal.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    # Relationships
    user: Mapped[Optional["User"]] = relationship("User")
    client: Mapped[Optional["Client"]] = relationship("Client", back_populates="activities")
    deal: Mapped[Optional["Deal"]] = relationship("Deal", back_populates="activities")

    def __repr__(self) -> str:
        return f"<Activity(id={self.id}, type={self.type})>"


__all__ = [
    # Enums
    "Role",
    "LeadSource",
    "ClientStatus",
    "PropertyStatus",
    "Currency",
    "DealStage",
    "STAGES",
    "TaskPriority",
    "TaskStatus",
    "ActivityType",
    # Models
    "User",
    "Client",
    "Property",
    "PropertyPhoto",
    "Deal",
    "Task",
    "Activity",
]
