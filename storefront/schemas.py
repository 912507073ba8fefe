"""
Request/response models for the HTTP surface.

Field names are camelCase on the wire to match the storefront frontend.
Money is always an integer in the smallest currency unit.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from storefront.models import Address, Order, PromoCode, ShippingRegion
from storefront.services.order_store import AddressSnapshot
from storefront.services.reconciliation import ReconciliationSummary


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ----------------------------------------------------------------------
# Requests
# ----------------------------------------------------------------------

class OrderLineIn(CamelModel):
    product_id: str = Field(alias="productId")
    quantity: int = 1


class CreateOrderBody(CamelModel):
    # Required fields are checked by the service so the caller gets one
    # ValidationError listing everything that is missing.
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    phone: Optional[str] = None
    guest_email: Optional[str] = Field(None, alias="guestEmail")
    address: Optional[str] = None
    municipality: Optional[str] = None
    city: Optional[str] = None
    wilaya: Optional[str] = None
    postal_code: Optional[str] = Field(None, alias="postalCode")
    items: List[OrderLineIn] = Field(default_factory=list)
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    promo_code: Optional[str] = Field(None, alias="promoCode")

    # Advisory display values; recomputed server-side
    subtotal: Optional[int] = None
    shipping: Optional[int] = None
    discount: Optional[int] = None
    total: Optional[int] = None

    def address_snapshot(self) -> AddressSnapshot:
        return AddressSnapshot(
            first_name=(self.first_name or "").strip(),
            last_name=(self.last_name or "").strip(),
            phone=(self.phone or "").strip(),
            street=(self.address or "").strip(),
            region=(self.wilaya or "").strip(),
            email=self.guest_email,
            municipality=self.municipality,
            city=self.city,
            postal_code=self.postal_code,
        )


class ValidatePromoBody(CamelModel):
    code: Optional[str] = None
    subtotal: Optional[int] = None


class LinkGuestOrdersBody(CamelModel):
    phone: Optional[str] = None
    order_id: Optional[str] = Field(None, alias="orderId")


class LinkOrdersBody(CamelModel):
    order_ids: List[str] = Field(default_factory=list, alias="orderIds")


class UpdateOrderBody(CamelModel):
    status: Optional[str] = None
    tracking_number: Optional[str] = Field(None, alias="trackingNumber")
    notes: Optional[str] = None


class CreatePromoCodeBody(CamelModel):
    code: str
    type: str
    value: int
    min_order: Optional[int] = Field(None, alias="minOrder")
    max_uses: Optional[int] = Field(None, alias="maxUses")
    valid_from: Optional[datetime] = Field(None, alias="validFrom")
    valid_until: Optional[datetime] = Field(None, alias="validUntil")
    is_active: bool = Field(True, alias="isActive")


# ----------------------------------------------------------------------
# Responses
# ----------------------------------------------------------------------

class OrderItemOut(CamelModel):
    id: str
    product_id: str = Field(serialization_alias="productId")
    product_name: str = Field(serialization_alias="productName")
    product_price: int = Field(serialization_alias="productPrice")
    quantity: int


class OrderOut(CamelModel):
    id: str
    order_number: str = Field(serialization_alias="orderNumber")
    status: str
    owner_id: Optional[str] = Field(None, serialization_alias="userId")
    guest_email: Optional[str] = Field(None, serialization_alias="guestEmail")
    guest_phone: Optional[str] = Field(None, serialization_alias="guestPhone")
    subtotal: int
    shipping: int
    discount: int
    total: int
    payment_method: Optional[str] = Field(None, serialization_alias="paymentMethod")
    promo_code: Optional[str] = Field(None, serialization_alias="promoCode")
    tracking_number: Optional[str] = Field(None, serialization_alias="trackingNumber")
    notes: Optional[str] = None
    shipping_address: Dict[str, Any] = Field(serialization_alias="shippingAddress")
    items: List[OrderItemOut]
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    @classmethod
    def from_order(cls, order: Order, order_number: str) -> "OrderOut":
        return cls(
            id=order.id,
            order_number=order_number,
            status=order.status,
            owner_id=order.owner_id,
            guest_email=order.guest_email,
            guest_phone=order.guest_phone,
            subtotal=order.subtotal,
            shipping=order.shipping,
            discount=order.discount,
            total=order.total,
            payment_method=order.payment_method,
            promo_code=order.promo_code,
            tracking_number=order.tracking_number,
            notes=order.notes,
            shipping_address=dict(order.shipping_address or {}),
            items=[
                OrderItemOut(
                    id=item.id,
                    product_id=item.product_id,
                    product_name=item.product_name,
                    product_price=item.product_price,
                    quantity=item.quantity,
                )
                for item in order.items
            ],
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class CreateOrderOut(CamelModel):
    id: str
    order_number: str = Field(serialization_alias="orderNumber")
    subtotal: int
    shipping: int
    discount: int
    total: int


class PromoQuoteOut(CamelModel):
    code: str
    discount_type: str = Field(serialization_alias="discountType")
    discount_value: int = Field(serialization_alias="discountValue")
    discount_amount: int = Field(serialization_alias="discountAmount")


class TrackOrderOut(CamelModel):
    data: OrderOut
    requires_auth: bool = Field(serialization_alias="requiresAuth")
    is_guest: bool = Field(serialization_alias="isGuest")


class StrategyOut(CamelModel):
    strategy: str
    linked: int
    error: Optional[str] = None


class ReconcileOut(CamelModel):
    linked_count: int = Field(serialization_alias="linkedCount")
    address_created: bool = Field(serialization_alias="addressCreated")
    partial: bool
    strategies: List[StrategyOut]

    @classmethod
    def from_summary(cls, summary: ReconciliationSummary) -> "ReconcileOut":
        return cls(
            linked_count=summary.linked_count,
            address_created=summary.address_created,
            partial=summary.partial,
            strategies=[
                StrategyOut(strategy=s.strategy, linked=s.linked, error=s.error)
                for s in summary.strategies
            ],
        )


class AddressOut(CamelModel):
    id: str
    first_name: str = Field(serialization_alias="firstName")
    last_name: str = Field(serialization_alias="lastName")
    phone: str
    email: Optional[str] = None
    street: str = Field(serialization_alias="address")
    municipality: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = Field(None, serialization_alias="wilaya")
    postal_code: Optional[str] = Field(None, serialization_alias="postalCode")
    is_default: bool = Field(serialization_alias="isDefault")

    @classmethod
    def from_address(cls, address: Address) -> "AddressOut":
        return cls(
            id=address.id,
            first_name=address.first_name,
            last_name=address.last_name,
            phone=address.phone,
            email=address.email,
            street=address.street,
            municipality=address.municipality,
            city=address.city,
            region=address.region,
            postal_code=address.postal_code,
            is_default=address.is_default,
        )


class PromoCodeOut(CamelModel):
    id: str
    code: str
    discount_type: str = Field(serialization_alias="type")
    discount_value: int = Field(serialization_alias="value")
    min_order_amount: int = Field(serialization_alias="minOrder")
    max_uses: Optional[int] = Field(None, serialization_alias="maxUses")
    used_count: int = Field(serialization_alias="usedCount")
    is_active: bool = Field(serialization_alias="isActive")
    valid_from: Optional[datetime] = Field(None, serialization_alias="validFrom")
    valid_until: Optional[datetime] = Field(None, serialization_alias="validUntil")

    @classmethod
    def from_promo(cls, promo: PromoCode) -> "PromoCodeOut":
        return cls(
            id=promo.id,
            code=promo.code,
            discount_type=promo.discount_type,
            discount_value=promo.discount_value,
            min_order_amount=promo.min_order_amount,
            max_uses=promo.max_uses,
            used_count=promo.used_count,
            is_active=promo.is_active,
            valid_from=promo.valid_from,
            valid_until=promo.valid_until,
        )


class ShippingRegionOut(CamelModel):
    id: str
    code: str
    name: str
    shipping_cost: int = Field(serialization_alias="shippingCost")
    delivery_days: int = Field(serialization_alias="deliveryDays")

    @classmethod
    def from_region(cls, region: ShippingRegion) -> "ShippingRegionOut":
        return cls(
            id=region.id,
            code=region.code,
            name=region.name,
            shipping_cost=region.shipping_cost,
            delivery_days=region.delivery_days,
        )
