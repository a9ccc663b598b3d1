"""
Tests for cart persistence
"""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, Mock

import pytest

from garden_market.cart.storage import CartRepository
from garden_market.catalog.models import Category
from garden_market.db import TTL, RedisKeys


@pytest.fixture
def mock_redis():
    """Mock async Upstash Redis client"""
    redis = Mock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def repository(mock_redis):
    return CartRepository(mock_redis)


@pytest.mark.asyncio
async def test_save_writes_lines_with_ttl(repository, mock_redis, cart, rose, sample_vendor):
    snapshot = cart.add_to_cart(rose, sample_vendor, 2)

    await repository.save("session-1", snapshot)

    key, data = mock_redis.set.call_args.args
    assert key == "cart:session-1"
    assert mock_redis.set.call_args.kwargs == {"ex": TTL.CART}
    stored = json.loads(data)
    assert stored["lines"][0]["product_name"] == "Rose"
    assert stored["lines"][0]["category"] == "Flowers"
    assert stored["lines"][0]["quantity"] == 2
    assert stored["lines"][0]["captured_price"] == "5.00"


@pytest.mark.asyncio
async def test_save_empty_cart_deletes_key(repository, mock_redis, cart):
    await repository.save("session-1", cart.snapshot())

    mock_redis.delete.assert_awaited_once_with("cart:session-1")
    mock_redis.set.assert_not_called()


@pytest.mark.asyncio
async def test_load_restores_lines(repository, mock_redis, cart):
    mock_redis.get.return_value = json.dumps({
        "lines": [{
            "vendor_id": "garden-1",
            "product_name": "Basil",
            "category": "Herbs",
            "quantity": 3,
            "captured_price": "2.25",
            "added_at": "2025-01-01T00:00:00+00:00",
        }],
    })

    restored = await repository.load("session-1", cart)

    assert restored.item_count == 3
    assert restored.vendor_id == "garden-1"
    assert cart.lines[0].product_key.category is Category.HERBS
    assert cart.subtotal == Decimal("6.75")


@pytest.mark.asyncio
async def test_load_nothing_stored(repository, cart):
    assert await repository.load("session-1", cart) is None
    assert cart.lines == ()


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    "not json",
    json.dumps({"lines": [{"vendor_id": "garden-1"}]}),
    json.dumps({"lines": [{
        "vendor_id": "garden-1", "product_name": "Rose", "category": "Weeds",
        "quantity": 1, "captured_price": "5",
    }]}),
    json.dumps({"lines": [{
        "vendor_id": "garden-1", "product_name": "Rose", "category": "Flowers",
        "quantity": 1, "captured_price": "abc",
    }]}),
    json.dumps({"lines": [{
        "vendor_id": "garden-1", "product_name": "Rose", "category": "Flowers",
        "quantity": 1, "captured_price": None,
    }]}),
    json.dumps({"lines": [
        {"vendor_id": "garden-1", "product_name": "Rose", "category": "Flowers",
         "quantity": 1, "captured_price": "5"},
        {"vendor_id": "garden-2", "product_name": "Mint", "category": "Herbs",
         "quantity": 1, "captured_price": "1"},
    ]}),
])
async def test_load_corrupted_payload_is_dropped(repository, mock_redis, cart, payload):
    mock_redis.get.return_value = payload

    assert await repository.load("session-1", cart) is None

    mock_redis.delete.assert_awaited_once_with("cart:session-1")
    assert cart.lines == ()


@pytest.mark.asyncio
async def test_delete(repository, mock_redis):
    await repository.delete("session-1")

    mock_redis.delete.assert_awaited_once_with(RedisKeys.cart_key("session-1"))
