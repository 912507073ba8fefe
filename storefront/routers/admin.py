"""
Admin console API.

Every route requires a server-issued token with the admin role.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from storefront.auth import Identity, require_admin
from storefront.routers.dependencies import get_storefront
from storefront.schemas import (
    CreatePromoCodeBody,
    OrderOut,
    PromoCodeOut,
    UpdateOrderBody,
)
from storefront.services.storefront import Storefront

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/orders", response_model=List[OrderOut])
async def list_orders(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin: Identity = Depends(require_admin),
    storefront: Storefront = Depends(get_storefront),
):
    orders = await storefront.list_orders(status=status, limit=limit, offset=offset)
    return [OrderOut.from_order(o, storefront.order_number(o)) for o in orders]


@router.get("/orders/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: str,
    admin: Identity = Depends(require_admin),
    storefront: Storefront = Depends(get_storefront),
):
    order = await storefront.get_order(order_id)
    return OrderOut.from_order(order, storefront.order_number(order))


@router.patch("/orders/{order_id}", response_model=OrderOut)
async def update_order(
    order_id: str,
    body: UpdateOrderBody,
    admin: Identity = Depends(require_admin),
    storefront: Storefront = Depends(get_storefront),
):
    """Change status (per the workflow table), tracking number or notes."""
    order = await storefront.update_order_status(
        order_id,
        status=body.status or None,
        tracking_number=body.tracking_number or None,
        notes=body.notes,
    )
    logger.info(f"Admin {admin.user_id} updated order {order_id}")
    return OrderOut.from_order(order, storefront.order_number(order))


@router.get("/promo-codes", response_model=List[PromoCodeOut])
async def list_promo_codes(
    admin: Identity = Depends(require_admin),
    storefront: Storefront = Depends(get_storefront),
):
    promos = await storefront.list_promo_codes()
    return [PromoCodeOut.from_promo(p) for p in promos]


@router.post("/promo-codes", response_model=PromoCodeOut, status_code=201)
async def create_promo_code(
    body: CreatePromoCodeBody,
    admin: Identity = Depends(require_admin),
    storefront: Storefront = Depends(get_storefront),
):
    promo = await storefront.create_promo_code(
        code=body.code,
        discount_type=body.type,
        discount_value=body.value,
        min_order_amount=body.min_order or 0,
        max_uses=body.max_uses,
        valid_from=_naive_utc(body.valid_from),
        valid_until=_naive_utc(body.valid_until),
        is_active=body.is_active,
    )
    return PromoCodeOut.from_promo(promo)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
