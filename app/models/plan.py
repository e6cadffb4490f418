from sqlalchemy import Boolean, String, Enum, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class Plan(Base):
    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(primary_key=True)

    # A stable identifier like: "premium", "annual"
    code: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    name: Mapped[str] = mapped_column(String(120))
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Stripe price this plan checks out with; also tells plan tiers apart on records
    price_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    interval: Mapped[str] = mapped_column(
        Enum("month", "year", name="plan_interval")
    )

    # Money (use Numeric for currency)
    price: Mapped[float] = mapped_column(Numeric(10, 2))
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    active: Mapped[bool] = mapped_column(Boolean, default=True)
