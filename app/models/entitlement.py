from datetime import datetime
from sqlalchemy import Boolean, ForeignKey, Enum, DateTime, String, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.base import Base
from app.utils.dt import utcnow

SUBSCRIPTION_STATUSES = ("none", "active", "trialing", "past_due", "canceled")

# Statuses that grant access; everything else denies
ACCESS_STATUSES = frozenset({"active", "trialing"})

class Entitlement(Base):
    __tablename__ = "entitlements"

    id: Mapped[int] = mapped_column(primary_key=True)

    # One record per user: writes are upserts on this column
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), unique=True, index=True)

    # Status = our internal truth for gating
    subscription_status: Mapped[str] = mapped_column(
        Enum(*SUBSCRIPTION_STATUSES, name="subscription_status"),
        default="none",
        index=True
    )

    # Stripe references (nullable because not all apply)
    subscription_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    price_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    customer_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    current_period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False)

    # Provider "created" time of the last applied event, for out-of-order deliveries
    last_event_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at : Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    updated_at : Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user = relationship("User")

    __table_args__ = (
        Index("ix_entitlements_user_status", "user_id", "subscription_status"),
    )

    @property
    def grants_access(self) -> bool:
        return self.subscription_status in ACCESS_STATUSES


class EntitlementEvent(Base):
    """Audit ledger: one row per provider event we processed."""
    __tablename__ = "entitlement_events"

    id: Mapped[int] = mapped_column(primary_key=True)

    event_id: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    event_type: Mapped[str] = mapped_column(String(120))
    user_id: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    # applied / skipped_stale / dropped / ignored / override
    outcome: Mapped[str] = mapped_column(String(32))
    subscription_status: Mapped[str | None] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
