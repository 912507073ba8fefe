"""
Order models - purchases and their frozen line items.
"""

from enum import Enum
from typing import Optional, List

from sqlalchemy import String, Text, ForeignKey, Index, Integer, JSON, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.models.base import Base, UUIDMixin, TimestampMixin


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class Order(Base, UUIDMixin, TimestampMixin):
    """
    A single purchase.

    owner_id is null for guest checkouts and is assigned at most once,
    by reconciliation. Money is stored in the smallest currency unit.
    """
    __tablename__ = "orders"

    owner_id: Mapped[Optional[str]] = mapped_column(String(64))

    # Guest contact, kept for audit after the order is linked
    guest_email: Mapped[Optional[str]] = mapped_column(String(255))
    guest_phone: Mapped[Optional[str]] = mapped_column(String(50))

    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING.value, nullable=False)

    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    discount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total: Mapped[int] = mapped_column(Integer, nullable=False)

    payment_method: Mapped[Optional[str]] = mapped_column(String(100))
    promo_code: Mapped[Optional[str]] = mapped_column(String(50))
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    # Denormalized copy of the address at time of order
    shipping_address: Mapped[dict] = mapped_column(JSON, nullable=False)

    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.position",
    )

    __table_args__ = (
        CheckConstraint("subtotal >= 0 AND shipping >= 0 AND discount >= 0 AND total >= 0", name="ck_order_money_non_negative"),
        CheckConstraint("total = subtotal + shipping - discount", name="ck_order_money_balance"),
        Index("idx_order_owner_created", "owner_id", "created_at"),
        Index("idx_order_guest_phone", "guest_phone"),
        Index("idx_order_status_created", "status", "created_at"),
    )

    @property
    def is_guest(self) -> bool:
        return self.owner_id is None

    def order_number(self, prefix: str = "ORD") -> str:
        return f"{prefix}-{self.id[:8].upper()}"


class OrderItem(Base, UUIDMixin):
    """A purchased product with its name and price frozen at checkout."""
    __tablename__ = "order_items"

    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_price: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_orderitem_quantity_positive"),
        CheckConstraint("product_price >= 0", name="ck_orderitem_price_non_negative"),
        Index("idx_orderitem_order", "order_id"),
    )

    @property
    def line_total(self) -> int:
        return self.product_price * self.quantity
