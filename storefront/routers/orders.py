from typing import Optional

from fastapi import APIRouter, Depends, Header, Query

from storefront.auth import Identity, get_optional_identity
from storefront.middleware.idempotency import IdempotencyMiddleware, guest_scope
from storefront.routers.dependencies import get_idempotency, get_storefront
from storefront.schemas import (
    CreateOrderBody,
    CreateOrderOut,
    OrderOut,
    PromoQuoteOut,
    ShippingRegionOut,
    TrackOrderOut,
    ValidatePromoBody,
)
from storefront.services.storefront import CheckoutLine, CheckoutRequest, Storefront

router = APIRouter()


@router.post("/orders", status_code=201)
async def create_order(
    body: CreateOrderBody,
    identity: Optional[Identity] = Depends(get_optional_identity),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    storefront: Storefront = Depends(get_storefront),
    idempotency: IdempotencyMiddleware = Depends(get_idempotency),
):
    """
    Checkout. Works for guests and for authenticated accounts.

    Money fields in the body are display values only; subtotal, shipping
    and discount are recomputed server-side.
    """
    request = CheckoutRequest(
        lines=[CheckoutLine(product_id=line.product_id, quantity=line.quantity) for line in body.items],
        address=body.address_snapshot(),
        payment_method=body.payment_method,
        promo_code=body.promo_code,
        owner_id=identity.user_id if identity else None,
        guest_email=body.guest_email,
        guest_phone=body.phone,
        client_subtotal=body.subtotal,
    )

    async def place_order() -> dict:
        result = await storefront.create_order(request)
        order = result.order
        return {
            "data": CreateOrderOut(
                id=order.id,
                order_number=result.order_number,
                subtotal=order.subtotal,
                shipping=order.shipping,
                discount=order.discount,
                total=order.total,
            ).model_dump(by_alias=True)
        }

    if not idempotency_key:
        return await place_order()

    return await idempotency.ensure_idempotent(
        key=idempotency_key,
        scope=identity.user_id if identity else guest_scope(body.guest_email, body.phone),
        endpoint="/api/orders",
        handler=place_order,
    )


@router.get("/orders/track", response_model=TrackOrderOut)
async def track_order(
    id: Optional[str] = Query(None),
    identity: Optional[Identity] = Depends(get_optional_identity),
    storefront: Storefront = Depends(get_storefront),
):
    view = await storefront.track_order(id, caller_id=identity.user_id if identity else None)
    return TrackOrderOut(
        data=OrderOut.from_order(view.order, storefront.order_number(view.order)),
        requires_auth=view.requires_auth,
        is_guest=view.is_guest,
    )


@router.post("/promo-codes/validate")
async def validate_promo(
    body: ValidatePromoBody,
    storefront: Storefront = Depends(get_storefront),
):
    quote = await storefront.validate_promo(body.code, body.subtotal)
    return {"success": True, "data": PromoQuoteOut(**quote.__dict__).model_dump(by_alias=True)}


@router.get("/wilayas")
async def list_shipping_regions(storefront: Storefront = Depends(get_storefront)):
    regions = await storefront.list_shipping_regions()
    return {
        "success": True,
        "data": [ShippingRegionOut.from_region(r).model_dump(by_alias=True) for r in regions],
    }
