from datetime import datetime
from uuid import uuid4
from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base
from app.utils.dt import utcnow

def _new_user_id() -> str:
    return uuid4().hex

class User(Base):
    __tablename__ = "users"

    # Opaque, stable identity handed to the rest of the system
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_user_id)

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    display_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # Admin override: always granted, never derived from payment events
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)

    # Provider customer reference, stored at checkout so webhooks never re-resolve by email
    stripe_customer_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
