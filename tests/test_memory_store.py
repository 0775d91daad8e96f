"""Tests for the in-memory key/value store."""

import pytest

from fintrack.services.storage import (
    Condition,
    ConditionFailedError,
    InMemoryStore,
    StorageError,
)
from fintrack.repository.keys import PRIMARY_KEY, SECONDARY_INDEXES


def item(sk: str, pk: str = "USER#u1", **attributes):
    return {"PK": pk, "SK": sk, **attributes}


class TestSingleItemOperations:
    """Tests for put/get/delete and conditions."""

    async def test_put_and_get(self, store):
        """Test a stored item can be read back."""
        await store.put(item("PROFILE", name="Ann"))
        assert await store.get({"PK": "USER#u1", "SK": "PROFILE"}) == item("PROFILE", name="Ann")

    async def test_get_missing(self, store):
        """Test that a missing key returns None."""
        assert await store.get({"PK": "USER#nobody", "SK": "PROFILE"}) is None

    async def test_returned_items_are_copies(self, store):
        """Test that mutating a read item does not change the store."""
        await store.put(item("PROFILE", name="Ann"))
        read = await store.get({"PK": "USER#u1", "SK": "PROFILE"})
        read["name"] = "Bob"
        assert (await store.get({"PK": "USER#u1", "SK": "PROFILE"}))["name"] == "Ann"

    async def test_key_not_exists(self, store):
        """Test that a create condition rejects an existing key."""
        await store.put(item("PROFILE"), Condition.key_not_exists())
        with pytest.raises(ConditionFailedError):
            await store.put(item("PROFILE"), Condition.key_not_exists())

    async def test_attribute_equals(self, store):
        """Test compare-and-swap on an attribute."""
        await store.put(item("TX#1", version=1))
        await store.put(item("TX#1", version=2), Condition.attribute_equals("version", 1))
        with pytest.raises(ConditionFailedError):
            await store.put(item("TX#1", version=3), Condition.attribute_equals("version", 1))
        assert (await store.get({"PK": "USER#u1", "SK": "TX#1"}))["version"] == 2

    async def test_delete_requires_existing_key(self, store):
        """Test that an exists condition fails on a missing key."""
        with pytest.raises(ConditionFailedError):
            await store.delete({"PK": "USER#u1", "SK": "TX#1"}, Condition.key_exists())

    async def test_delete(self, store):
        """Test that delete removes the item."""
        await store.put(item("TX#1"))
        await store.delete({"PK": "USER#u1", "SK": "TX#1"}, Condition.key_exists())
        assert len(store) == 0

    async def test_key_required(self, store):
        """Test that items without a primary key are rejected."""
        with pytest.raises(StorageError):
            await store.put({"PK": "USER#u1"})


class TestQuery:
    """Tests for queries, ordering and pagination."""

    @pytest.fixture
    async def filled(self, store):
        for n in range(1, 6):
            await store.put(item(f"TX#{n:010d}#t{n}", GSI1PK="MONTH#2024-01#u1", GSI1SK=f"TX#{n:010d}"))
        await store.put(item("BUDGET#2024-01#FOOD"))
        await store.put(item("PROFILE"))
        return store

    async def test_prefix_and_order(self, filled):
        """Test the sort key prefix filter and ascending order."""
        page = await filled.query("USER#u1", sort_key_prefix="TX#")
        assert [i["SK"][-2:] for i in page.items] == ["t1", "t2", "t3", "t4", "t5"]
        assert page.last_key is None

    async def test_descending(self, filled):
        """Test newest-first ordering."""
        page = await filled.query("USER#u1", sort_key_prefix="TX#", scan_forward=False)
        assert page.items[0]["SK"].endswith("t5")

    async def test_sort_key_equals(self, filled):
        """Test exact sort key matching."""
        page = await filled.query("USER#u1", sort_key_equals="PROFILE")
        assert len(page.items) == 1

    async def test_pagination(self, filled):
        """Test that following last_key visits every item exactly once."""
        seen = []
        start = None
        while True:
            page = await filled.query(
                "MONTH#2024-01#u1",
                index_name="GSI1",
                limit=2,
                exclusive_start_key=start,
                scan_forward=False,
            )
            seen.extend(i["SK"] for i in page.items)
            if page.last_key is None:
                break
            start = page.last_key
        assert len(seen) == 5
        assert len(set(seen)) == 5
        assert seen[0].endswith("t5")

    async def test_index_is_sparse(self, filled):
        """Test that items without index attributes are not indexed."""
        page = await filled.query("MONTH#2024-01#u1", index_name="GSI1")
        assert all(i["SK"].startswith("TX#") for i in page.items)
        assert len(page.items) == 5

    async def test_unknown_index(self, store):
        """Test that querying an undefined index fails."""
        with pytest.raises(StorageError):
            await store.query("X", index_name="GSI9")

    async def test_consistent_read_only_on_table(self, filled):
        """Test that consistent reads work on the table and are refused on indexes."""
        page = await filled.query("USER#u1", sort_key_prefix="TX#", consistent_read=True)
        assert len(page.items) == 5
        with pytest.raises(StorageError):
            await filled.query("MONTH#2024-01#u1", index_name="GSI1", consistent_read=True)


class TestBatchWrite:
    """Tests for blind batch writes."""

    async def test_batch_write_overwrites(self, store):
        """Test that batch writes ignore existing items."""
        await store.put(item("TX#1", amount=1))
        unprocessed = await store.batch_write([item("TX#1", amount=2), item("TX#2")])
        assert unprocessed == []
        assert (await store.get({"PK": "USER#u1", "SK": "TX#1"}))["amount"] == 2
        assert len(store) == 2

    async def test_hook_reports_unprocessed(self):
        """Test that items returned by the hook are not written."""
        store = InMemoryStore(PRIMARY_KEY, SECONDARY_INDEXES)
        store.batch_write_hook = lambda items: items[:1]
        unprocessed = await store.batch_write([item("TX#1"), item("TX#2")])
        assert [i["SK"] for i in unprocessed] == ["TX#1"]
        assert await store.get({"PK": "USER#u1", "SK": "TX#1"}) is None
        assert await store.get({"PK": "USER#u1", "SK": "TX#2"}) is not None
        assert len(store.batch_write_calls) == 1
