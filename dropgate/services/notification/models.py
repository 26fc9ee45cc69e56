"""Order database persistence model."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from dropgate.common.db import Base


class Order(Base):
    """One fulfilled purchase, written once per processed transaction."""

    __tablename__ = "orders"

    transaction_id: Mapped[str] = mapped_column(String, primary_key=True)
    customer_email: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    currency_code: Mapped[str | None] = mapped_column(String(3), nullable=True)
    total: Mapped[str | None] = mapped_column(String, nullable=True)
    items: Mapped[list] = mapped_column(JSON().with_variant(JSONB, "postgresql"), default=list)
    download_token: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
