"""
Standing address model - reusable, owner-associated postal addresses.
"""

from typing import Optional

from sqlalchemy import String, Boolean, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, UUIDMixin, TimestampMixin


class Address(Base, UUIDMixin, TimestampMixin):
    """Unlike an order's shipping snapshot, this record is never frozen."""
    __tablename__ = "addresses"

    owner_id: Mapped[str] = mapped_column(String(64), nullable=False)

    first_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    street: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    municipality: Mapped[Optional[str]] = mapped_column(String(255))
    city: Mapped[Optional[str]] = mapped_column(String(255))
    region: Mapped[Optional[str]] = mapped_column(String(255))
    postal_code: Mapped[Optional[str]] = mapped_column(String(20))

    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_address_owner", "owner_id"),
        # One default address per owner
        Index(
            "uq_address_owner_default",
            "owner_id",
            unique=True,
            sqlite_where=text("is_default = 1"),
            postgresql_where=text("is_default"),
        ),
    )
