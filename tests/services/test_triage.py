"""Tests for TriageService against an in-memory database.

Tests cover:
    - Queue membership, ordering and filters
    - Navigation and statistics
    - Confirm, reassign, create, merge and ignore, with their guards
    - Ignored items staying out of the queue after re-ingestion
"""
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from supplier_identity.db.models import CanonicalProduct, MatchMethod, SupplierItem, SupplierProductMapping
from supplier_identity.errors import InvalidStateError, NotFoundError, ValidationError
from supplier_identity.models.triage import IssueType, NewProductData, TriageFilters
from supplier_identity.services.ingestion import CatalogIngestionService
from supplier_identity.services.triage import TriageService

REVIEWER = "reviewer@platform"


def day(n):
    return datetime(2026, 1, n, tzinfo=timezone.utc)


@pytest.fixture
def service(session_factory, matching_config):
    return TriageService(session_factory, matching_config)


@pytest.fixture
async def queue(factory):
    """Three queued items, one ignored and one already resolved.

    Queue order: unlinked, fuzzy (0.5), barcode (0.8).
    """
    supplier = await factory.supplier()
    gloves = await factory.product(name="Nitrile Gloves M", gtin="4006381333931")
    mask = await factory.product(name="Surgical Mask")

    unlinked = await factory.item(
        supplier,
        sku="SKU-U",
        name="Unknown widget",
        raw_gtin="036000291452",
        matched_at=day(3),
    )
    fuzzy = await factory.item(
        supplier,
        sku="SKU-A",
        name="Gloves nitrile",
        product=gloves,
        match_method=MatchMethod.FUZZY_NAME,
        match_confidence=0.5,
        matched_at=day(1),
    )
    scanned = await factory.item(
        supplier,
        sku="SKU-B",
        name="Mask 3-ply",
        product=mask,
        match_method=MatchMethod.BARCODE_SCAN,
        match_confidence=0.8,
        matched_at=day(2),
    )
    ignored = await factory.item(supplier, sku="SKU-I", is_active=False)
    resolved = await factory.item(
        supplier,
        sku="SKU-R",
        product=gloves,
        match_confidence=1.0,
        needs_review=False,
    )
    return SimpleNamespace(
        supplier=supplier,
        gloves=gloves,
        mask=mask,
        unlinked=unlinked,
        fuzzy=fuzzy,
        scanned=scanned,
        ignored=ignored,
        resolved=resolved,
    )


def ids(items):
    return [item.id for item in items]


class TestQueueReads:
    """Listing, filtering, navigation and stats."""

    async def test_queue_order_and_membership(self, service, queue):
        items = await service.list_items()

        assert ids(items) == [queue.unlinked.id, queue.fuzzy.id, queue.scanned.id]
        assert await service.count_pending() == 3
        assert items[1].product_name == "Nitrile Gloves M"
        assert items[1].supplier_name == "Acme Medical"

    async def test_pagination(self, service, queue):
        page = await service.list_items(limit=1, offset=1)

        assert ids(page) == [queue.fuzzy.id]

    @pytest.mark.parametrize(
        "issue_type,expected",
        [
            (IssueType.LOW_CONFIDENCE, ["fuzzy", "scanned"]),
            (IssueType.FUZZY_MATCH, ["fuzzy"]),
            (IssueType.NO_GTIN, ["scanned"]),
        ],
    )
    async def test_issue_type_filters(self, service, queue, issue_type, expected):
        filters = TriageFilters(issue_type=issue_type)

        items = await service.list_items(filters)

        assert ids(items) == [getattr(queue, name).id for name in expected]
        assert await service.count_pending(filters) == len(expected)

    async def test_search_filter(self, service, queue):
        by_sku = await service.list_items(TriageFilters(search="sku-b"))
        by_product = await service.list_items(TriageFilters(search="nitrile gloves"))

        assert ids(by_sku) == [queue.scanned.id]
        assert ids(by_product) == [queue.fuzzy.id]

    async def test_supplier_filter(self, service, factory, queue):
        other = await factory.supplier("Other Supplier")
        foreign = await factory.item(other, sku="SKU-O")

        items = await service.list_items(TriageFilters(supplier_id=other.id))

        assert ids(items) == [foreign.id]

    async def test_navigate_middle_item(self, service, queue):
        position = await service.navigate(queue.fuzzy.id)

        assert position.index == 1
        assert position.total == 3
        assert position.previous_id == queue.unlinked.id
        assert position.next_id == queue.scanned.id

    async def test_navigate_item_outside_queue(self, service, queue):
        position = await service.navigate(queue.resolved.id)

        assert position.index is None
        assert position.total == 3
        assert position.next_id == queue.unlinked.id

    async def test_navigate_respects_filters(self, service, queue):
        position = await service.navigate(queue.scanned.id, TriageFilters(issue_type=IssueType.LOW_CONFIDENCE))

        assert position.index == 1
        assert position.total == 2
        assert position.next_id is None

    async def test_stats(self, service, queue):
        stats = await service.get_stats()

        assert stats.total_pending == 3
        assert stats.unlinked == 1
        assert stats.low_confidence == 2
        assert stats.fuzzy_matches == 1
        assert stats.by_method == {"manual": 1, "fuzzy_name": 1, "barcode_scan": 1}
        assert stats.by_supplier == {str(queue.supplier.id): 3}
        assert stats.avg_confidence == pytest.approx(0.65)
        assert stats.oldest_matched_at is not None

    async def test_stats_keep_same_named_suppliers_apart(self, service, factory, queue):
        namesake = await factory.supplier("Acme Medical")
        await factory.item(namesake, sku="SKU-N")

        stats = await service.get_stats()

        assert stats.by_supplier == {str(queue.supplier.id): 3, str(namesake.id): 1}

    async def test_no_gtin_filter_skips_unlinked_items(self, service, queue):
        items = await service.list_items(TriageFilters(issue_type=IssueType.NO_GTIN))

        assert queue.unlinked.id not in ids(items)
        assert all(item.product_id is not None and item.product_gtin is None for item in items)

    async def test_get_item(self, service, queue):
        item = await service.get_item(queue.scanned.id)

        assert item.product_name == "Surgical Mask"
        assert item.match_method.value == "barcode_scan"

        with pytest.raises(NotFoundError):
            await service.get_item(uuid4())

    async def test_search_products(self, service, queue):
        assert [p["id"] for p in await service.search_products("glove")] == [queue.gloves.id]
        assert [p["id"] for p in await service.search_products("400638")] == [queue.gloves.id]
        assert await service.search_products("g") == []


class TestConfirmAndReassign:
    """Accepting or replacing the current link."""

    async def test_confirm_resolves_item(self, service, factory, queue):
        product_id = await service.confirm(queue.fuzzy.id, REVIEWER)

        assert product_id == queue.gloves.id
        item = await factory.get(SupplierItem, queue.fuzzy.id)
        assert item.match_method == MatchMethod.MANUAL
        assert item.match_confidence == 1.0
        assert item.needs_review is False
        assert item.matched_by == REVIEWER
        assert item.is_human_resolved is True
        assert await service.count_pending() == 2

    async def test_confirm_unlinked_item(self, service, queue):
        with pytest.raises(InvalidStateError, match="no linked product"):
            await service.confirm(queue.unlinked.id, REVIEWER)

    @pytest.mark.parametrize("name", ["ignored", "resolved"])
    async def test_items_outside_queue_rejected(self, service, queue, name):
        with pytest.raises(InvalidStateError, match="not in the review queue"):
            await service.confirm(getattr(queue, name).id, REVIEWER)

    async def test_unknown_item(self, service, queue):
        with pytest.raises(NotFoundError):
            await service.confirm(uuid4(), REVIEWER)

    async def test_reassign(self, service, factory, queue):
        await service.reassign(queue.fuzzy.id, queue.mask.id, REVIEWER)

        item = await factory.get(SupplierItem, queue.fuzzy.id)
        assert item.product_id == queue.mask.id
        assert item.needs_review is False

    async def test_reassign_to_unknown_product(self, service, factory, queue):
        with pytest.raises(NotFoundError, match="Product not found"):
            await service.reassign(queue.fuzzy.id, uuid4(), REVIEWER)

        assert (await factory.get(SupplierItem, queue.fuzzy.id)).needs_review is True


class TestCreate:
    """Creating a canonical product from a queued item."""

    async def test_create_from_item_defaults(self, service, factory, queue):
        product_id = await service.create(queue.unlinked.id, REVIEWER)

        product = await factory.get(CanonicalProduct, product_id)
        assert product.name == "Unknown widget"
        assert product.gtin == "036000291452"
        assert product.description == "Box of 100"
        item = await factory.get(SupplierItem, queue.unlinked.id)
        assert item.product_id == product_id
        assert item.needs_review is False

    async def test_create_takes_brand_from_item(self, service, factory, queue):
        branded = await factory.item(queue.supplier, sku="SKU-BR", name="Exam Gloves", brand="Acme")

        product_id = await service.create(branded.id, REVIEWER)

        assert (await factory.get(CanonicalProduct, product_id)).brand == "Acme"

    async def test_create_with_explicit_data(self, service, factory, queue):
        product_id = await service.create(
            queue.unlinked.id,
            REVIEWER,
            NewProductData(name="Widget Pro", brand="Acme", gtin="96385074"),
        )

        product = await factory.get(CanonicalProduct, product_id)
        assert product.name == "Widget Pro"
        assert product.brand == "Acme"
        assert product.gtin == "96385074"

    async def test_raw_gtin_already_used_is_dropped(self, service, factory, queue):
        duplicate = await factory.item(
            queue.supplier, sku="SKU-D", name="Gloves again", raw_gtin="4006381333931"
        )

        product_id = await service.create(duplicate.id, REVIEWER)

        assert (await factory.get(CanonicalProduct, product_id)).gtin is None

    async def test_duplicate_explicit_gtin(self, service, queue):
        with pytest.raises(ValidationError, match="already exists"):
            await service.create(queue.unlinked.id, REVIEWER, {"gtin": "4006381333931"})

    async def test_invalid_explicit_gtin(self, service, queue):
        with pytest.raises(ValidationError, match="Invalid GTIN"):
            await service.create(queue.unlinked.id, REVIEWER, {"gtin": "4006381333932"})


class TestMerge:
    """Merging the item's product into another product."""

    async def test_merge_relinks_and_deletes_source(self, service, factory, queue):
        other = await factory.supplier("Other Supplier")
        other_item = await factory.item(other, sku="O-1", product=queue.gloves, needs_review=False)
        # The supplier already carries the target through SKU-B, so its other
        # gloves items become duplicates
        duplicate = await factory.item(queue.supplier, sku="SKU-G", product=queue.gloves, needs_review=False)
        mapping = await factory.mapping(queue.supplier, "SKU-G", queue.gloves)

        outcome = await service.merge(queue.fuzzy.id, queue.mask.id, REVIEWER)

        assert outcome.source_product_id == queue.gloves.id
        assert outcome.target_product_id == queue.mask.id
        assert outcome.moved_items == 2
        assert outcome.deactivated_items == 2
        assert await factory.get(CanonicalProduct, queue.gloves.id) is None

        triaged = await factory.get(SupplierItem, queue.fuzzy.id)
        assert triaged.product_id == queue.mask.id
        assert triaged.is_active is True
        assert triaged.needs_review is False

        assert (await factory.get(SupplierItem, other_item.id)).product_id == queue.mask.id
        deactivated = await factory.get(SupplierItem, duplicate.id)
        assert deactivated.product_id == queue.mask.id
        assert deactivated.is_active is False
        assert deactivated.ignored_by == REVIEWER
        assert (await factory.get(SupplierProductMapping, mapping.id)).product_id == queue.mask.id

    async def test_merge_into_itself(self, service, queue):
        with pytest.raises(ValidationError, match="itself"):
            await service.merge(queue.fuzzy.id, queue.gloves.id, REVIEWER)

    async def test_merge_unlinked_item(self, service, queue):
        with pytest.raises(InvalidStateError):
            await service.merge(queue.unlinked.id, queue.mask.id, REVIEWER)

    async def test_merge_into_unknown_product(self, service, factory, queue):
        with pytest.raises(NotFoundError):
            await service.merge(queue.fuzzy.id, uuid4(), REVIEWER)

        assert await factory.get(CanonicalProduct, queue.gloves.id) is not None


class TestIgnore:
    """Deactivating a queued item."""

    async def test_ignore_removes_from_queue(self, service, factory, queue):
        await service.ignore(queue.scanned.id, REVIEWER)

        item = await factory.get(SupplierItem, queue.scanned.id)
        assert item.is_active is False
        assert item.ignored_by == REVIEWER
        assert item.ignored_at is not None
        assert item.needs_review is True
        assert item.product_id == queue.mask.id
        assert (await service.navigate(queue.scanned.id)).index is None

    async def test_ignore_twice(self, service, queue):
        await service.ignore(queue.scanned.id, REVIEWER)

        with pytest.raises(InvalidStateError):
            await service.ignore(queue.scanned.id, REVIEWER)

    async def test_ignored_item_survives_reingestion(self, service, session_factory, matching_config, queue):
        await service.ignore(queue.unlinked.id, REVIEWER)
        ingestion = CatalogIngestionService(session_factory, matching_config, scorer=lambda q, c: 0.0)

        metrics = await ingestion.ingest(
            queue.supplier.id,
            [{"supplier_sku": "SKU-U", "supplier_name": "Unknown widget", "gtin": "4006381333931"}],
        )

        assert metrics.skipped_ignored == 1
        assert queue.unlinked.id not in ids(await service.list_items())
