from typing import List

from fastapi import APIRouter, Depends

from storefront.auth import Identity, get_current_identity
from storefront.routers.dependencies import get_storefront
from storefront.schemas import (
    AddressOut,
    LinkGuestOrdersBody,
    LinkOrdersBody,
    OrderOut,
    ReconcileOut,
)
from storefront.services.storefront import Storefront

router = APIRouter()


@router.post("/auth/link-guest-orders", response_model=ReconcileOut)
async def link_guest_orders(
    body: LinkGuestOrdersBody,
    identity: Identity = Depends(get_current_identity),
    storefront: Storefront = Depends(get_storefront),
):
    """
    Link guest orders to the caller's account by order id, phone and
    registered email, then seed a default address from the earliest order.

    A strategy that fails is reported in `strategies`; orders linked by
    the other strategies stay linked.
    """
    summary = await storefront.reconcile_guest_orders(
        identity.user_id,
        phone=body.phone,
        order_id=body.order_id,
        email=identity.email,
    )
    return ReconcileOut.from_summary(summary)


@router.post("/account/orders/link", response_model=ReconcileOut)
async def link_orders(
    body: LinkOrdersBody,
    identity: Identity = Depends(get_current_identity),
    storefront: Storefront = Depends(get_storefront),
):
    summary = await storefront.link_orders(identity.user_id, body.order_ids)
    return ReconcileOut.from_summary(summary)


@router.get("/account/orders", response_model=List[OrderOut])
async def list_my_orders(
    identity: Identity = Depends(get_current_identity),
    storefront: Storefront = Depends(get_storefront),
):
    orders = await storefront.list_account_orders(identity.user_id)
    return [OrderOut.from_order(o, storefront.order_number(o)) for o in orders]


@router.get("/account/orders/{order_id}", response_model=OrderOut)
async def get_my_order(
    order_id: str,
    identity: Identity = Depends(get_current_identity),
    storefront: Storefront = Depends(get_storefront),
):
    order = await storefront.get_account_order(identity.user_id, order_id)
    return OrderOut.from_order(order, storefront.order_number(order))


@router.get("/account/addresses", response_model=List[AddressOut])
async def list_my_addresses(
    identity: Identity = Depends(get_current_identity),
    storefront: Storefront = Depends(get_storefront),
):
    addresses = await storefront.list_account_addresses(identity.user_id)
    return [AddressOut.from_address(a) for a in addresses]
