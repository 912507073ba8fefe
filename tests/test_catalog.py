"""
Tests for the catalog client and notification delivery.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from storefront.errors import StoreUnavailableError, ValidationError
from storefront.services.catalog import HttpCatalogClient
from storefront.services.notifications import NotificationService


def _response(status_code, payload=None):
    request = httpx.Request("GET", "http://catalog.test/products")
    return httpx.Response(status_code, json=payload, request=request)


@pytest.mark.asyncio
async def test_catalog_parses_wrapped_payload():
    payload = {"data": [
        {"id": "food-1", "name": "Dry Cat Food 2kg", "price": 2500},
        {"id": "toy-1", "name": "Feather Wand", "price": "700.00"},
        {"id": "broken", "name": "No price"},
    ]}

    with patch("httpx.AsyncClient.get", AsyncMock(return_value=_response(200, payload))) as get:
        products = await HttpCatalogClient("http://catalog.test/").get_products(["toy-1", "food-1", "broken"])

    assert products["food-1"].price == 2500
    assert products["toy-1"].price == 700
    assert "broken" not in products
    assert get.await_args.kwargs["params"] == {"ids": "broken,food-1,toy-1"}


@pytest.mark.asyncio
async def test_catalog_accepts_bare_list():
    payload = [{"id": "bed-1", "name": "Dog Bed", "price": 8000}]

    with patch("httpx.AsyncClient.get", AsyncMock(return_value=_response(200, payload))):
        products = await HttpCatalogClient("http://catalog.test").get_products(["bed-1"])

    assert products["bed-1"].name == "Dog Bed"


@pytest.mark.asyncio
async def test_catalog_outage_is_retryable():
    with patch("httpx.AsyncClient.get", AsyncMock(side_effect=httpx.ConnectTimeout("timeout"))):
        with pytest.raises(StoreUnavailableError):
            await HttpCatalogClient("http://catalog.test").get_products(["food-1"])

    with patch("httpx.AsyncClient.get", AsyncMock(return_value=_response(503, {}))):
        with pytest.raises(StoreUnavailableError):
            await HttpCatalogClient("http://catalog.test").get_products(["food-1"])


@pytest.mark.asyncio
async def test_catalog_client_error_is_not_retryable():
    with patch("httpx.AsyncClient.get", AsyncMock(return_value=_response(400, {}))):
        with pytest.raises(ValidationError):
            await HttpCatalogClient("http://catalog.test").get_products(["food-1"])


@pytest.mark.asyncio
async def test_empty_lookup_skips_the_network():
    with patch("httpx.AsyncClient.get", AsyncMock()) as get:
        assert await HttpCatalogClient("http://catalog.test").get_products([]) == {}
    get.assert_not_awaited()


@pytest.mark.asyncio
async def test_notification_without_webhook_only_logs():
    with patch("httpx.AsyncClient.post", AsyncMock()) as post:
        assert await NotificationService().email_sent("amina@example.com", "Your order") is True
    post.assert_not_awaited()


@pytest.mark.asyncio
async def test_notification_webhook_delivery():
    ok = httpx.Response(202, request=httpx.Request("POST", "http://hooks.test"))

    with patch("httpx.AsyncClient.post", AsyncMock(return_value=ok)) as post:
        delivered = await NotificationService(webhook_url="http://hooks.test").email_sent("amina@example.com", "Hi")

    assert delivered is True
    body = post.await_args.kwargs["json"]
    assert body["event"] == "email_sent"
    assert body["data"] == {"to": "amina@example.com", "subject": "Hi"}


@pytest.mark.asyncio
async def test_notification_webhook_error_is_swallowed():
    failed = httpx.Response(500, request=httpx.Request("POST", "http://hooks.test"))

    with patch("httpx.AsyncClient.post", AsyncMock(return_value=failed)):
        delivered = await NotificationService(webhook_url="http://hooks.test").email_sent("a@b.c", "Hi")

    assert delivered is False
