"""
Tests for Catalog Cache
"""

import asyncio

import pytest

from garden_market.catalog.cache import CatalogCache, normalize_products
from garden_market.catalog.models import Category


class TestStaleness:
    """TTL and invalidation."""

    def test_unknown_vendor(self, cache):
        assert cache.get("nope") is None
        assert cache.is_stale("nope") is True
        assert cache.refresh_state("nope") is None

    def test_fresh_after_replace(self, cache, sample_vendor, rose):
        snapshot = cache.replace(sample_vendor.id, sample_vendor, {Category.FLOWERS: [rose]})

        assert snapshot.is_stale is False
        assert cache.get(sample_vendor.id).is_stale is False

    def test_stale_after_ttl(self, cache, clock, sample_vendor):
        cache.replace(sample_vendor.id, sample_vendor, {})

        clock.advance(300)
        assert cache.is_stale(sample_vendor.id) is False

        clock.advance(0.5)
        assert cache.is_stale(sample_vendor.id) is True

    def test_invalidate_keeps_data(self, cache, sample_vendor, rose):
        cache.replace(sample_vendor.id, sample_vendor, {Category.FLOWERS: [rose]})

        cache.invalidate(sample_vendor.id)

        snapshot = cache.get(sample_vendor.id)
        assert snapshot.is_stale is True
        assert snapshot.products(Category.FLOWERS) == (rose,)
        assert snapshot.generation == 1

    def test_invalidate_unknown_vendor_is_noop(self, cache):
        cache.invalidate("nope")

        assert cache.get("nope") is None

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            CatalogCache(ttl=0)


class TestReplace:
    """Atomic replacement and generations."""

    def test_generation_strictly_increases(self, cache, sample_vendor):
        generations = [cache.replace(sample_vendor.id, sample_vendor, {}).generation for _ in range(3)]

        assert generations == [1, 2, 3]
        assert cache.refresh_state(sample_vendor.id).generation == 3

    def test_replace_clears_invalidation(self, cache, sample_vendor):
        cache.replace(sample_vendor.id, sample_vendor, {})
        cache.invalidate(sample_vendor.id)

        cache.replace(sample_vendor.id, sample_vendor, {})

        assert cache.is_stale(sample_vendor.id) is False
        assert cache.refresh_state(sample_vendor.id).invalidated is False

    def test_replace_swaps_whole_collection(self, cache, sample_vendor, rose, basil):
        cache.replace(sample_vendor.id, sample_vendor, {Category.FLOWERS: [rose]})
        old = cache.get(sample_vendor.id)

        cache.replace(sample_vendor.id, sample_vendor, {Category.HERBS: [basil]})

        new = cache.get(sample_vendor.id)
        assert old.products(Category.FLOWERS) == (rose,)
        assert new.products(Category.FLOWERS) == ()
        assert new.find_product(basil.key) == basil
        assert new.find_product(rose.key) is None

    def test_replace_rejects_mismatched_vendor(self, cache, sample_vendor):
        with pytest.raises(ValueError):
            cache.replace("garden-9", sample_vendor, {})

    def test_listeners_notified(self, cache, sample_vendor):
        seen = []
        remove = cache.add_listener(lambda snapshot: seen.append(snapshot.generation))

        cache.replace(sample_vendor.id, sample_vendor, {})
        remove()
        cache.replace(sample_vendor.id, sample_vendor, {})

        assert seen == [1]

    @pytest.mark.asyncio
    async def test_waiters_resolved(self, cache, sample_vendor):
        waiter = cache.wait_for_update(sample_vendor.id)
        assert not waiter.done()

        cache.replace(sample_vendor.id, sample_vendor, {})

        snapshot = await asyncio.wait_for(waiter, timeout=1)
        assert snapshot.generation == 1

    @pytest.mark.asyncio
    async def test_clear_cancels_waiters(self, cache, sample_vendor):
        cache.replace(sample_vendor.id, sample_vendor, {})
        waiter = cache.wait_for_update(sample_vendor.id)

        cache.clear()

        assert waiter.cancelled()
        assert cache.vendor_ids() == []
        assert cache.get(sample_vendor.id) is None


class TestNormalizeProducts:
    """Grouping of plants by category."""

    def test_every_category_present(self, rose):
        grouped = normalize_products({Category.FLOWERS: [rose]})

        assert list(grouped) == list(Category)
        assert grouped[Category.OTHERS] == ()

    def test_products_land_under_own_category(self, rose, basil):
        grouped = normalize_products({"Flowers": [rose, basil]})

        assert grouped[Category.FLOWERS] == (rose,)
        assert grouped[Category.HERBS] == (basil,)

    def test_result_is_read_only(self, rose):
        grouped = normalize_products({Category.FLOWERS: [rose]})

        with pytest.raises(TypeError):
            grouped[Category.FLOWERS] = ()
