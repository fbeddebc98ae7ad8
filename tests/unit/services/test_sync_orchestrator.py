# tests/unit/services/test_sync_orchestrator.py
import pytest

from marketsync.core.enums import MovementKind, SyncDirection, SyncStatus
from marketsync.core.exceptions import SyncError, SyncInProgressError
from marketsync.services.stock_ledger import StockLedger
from marketsync.services.sync_orchestrator import _lock_for, run_sync_exclusive


def seed_three_units(store, marketplace):
    """Three units on three items; local 5/8/2, remote 6/8/0"""
    for n, (local, remote) in enumerate([(5, 6), (8, 8), (2, 0)], start=1):
        store.add_unit(f"unit-{n}", sku=f"SKU-{n}", quantity=local)
        store.add_link(f"link-{n}", f"unit-{n}", f"MLA{n}", variation_id=f"V{n}")
        marketplace.add_item(f"MLA{n}", quantity=remote, variations=[(f"V{n}", remote, f"SKU-{n}")])


"""
1. Direction semantics
"""

@pytest.mark.asyncio
async def test_push_publishes_local_stock(store, marketplace, orchestrator):
    store.add_unit("unit-1", sku="SKU-1", quantity=7)
    store.add_link("link-1", "unit-1", "MLA1", variation_id="V1")
    marketplace.add_item("MLA1", quantity=10, variations=[("V1", 10, "SKU-1")])

    report = await orchestrator.run_sync(SyncDirection.PUSH)

    assert report.synced == 1
    assert report.errors == []
    assert marketplace.variation_quantity("MLA1", "V1") == 7
    assert store.quantity("unit-1") == 7
    assert store.movements == []


@pytest.mark.asyncio
async def test_pull_adopts_remote_stock(store, marketplace, orchestrator):
    store.add_unit("unit-1", sku="SKU-1", quantity=7)
    store.add_link("link-1", "unit-1", "MLA1", variation_id="V1")
    marketplace.add_item("MLA1", quantity=10, variations=[("V1", 10, "SKU-1")])

    report = await orchestrator.run_sync("pull")

    assert report.synced == 1
    assert store.quantity("unit-1") == 10
    assert marketplace.variation_quantity("MLA1", "V1") == 10
    assert marketplace.update_calls == []
    [movement] = store.movements_for("unit-1")
    assert movement.delta == 3
    assert movement.kind == MovementKind.SYNC_RECONCILED


def seed_ten_local_seven_remote(store, marketplace):
    store.add_unit("unit-1", sku="SKU-1", quantity=10)
    store.add_link("link-1", "unit-1", "MLA1", variation_id="V1")
    marketplace.add_item("MLA1", quantity=7, variations=[("V1", 7, "SKU-1")])


@pytest.mark.asyncio
async def test_push_overwrites_remote_and_leaves_ledger_alone(store, marketplace, orchestrator):
    seed_ten_local_seven_remote(store, marketplace)

    report = await orchestrator.run_sync(SyncDirection.PUSH)

    assert report.synced == 1
    assert marketplace.variation_quantity("MLA1", "V1") == 10
    assert store.quantity("unit-1") == 10
    assert store.movements == []


@pytest.mark.asyncio
async def test_pull_overwrites_local_through_the_ledger(store, marketplace, orchestrator):
    seed_ten_local_seven_remote(store, marketplace)

    report = await orchestrator.run_sync(SyncDirection.PULL)

    assert report.synced == 1
    assert store.quantity("unit-1") == 7
    assert marketplace.variation_quantity("MLA1", "V1") == 7
    assert marketplace.update_calls == []
    assert [(m.delta, m.kind.value) for m in store.movements] == [(-3, "sync-reconciled")]


@pytest.mark.asyncio
async def test_pull_keeps_ledger_consistent(store, marketplace, orchestrator):
    seed_three_units(store, marketplace)
    initial = {uid: store.quantity(uid) for uid in store.units}

    await orchestrator.run_sync(SyncDirection.PULL)

    ledger = StockLedger(store)
    for unit_id, quantity in initial.items():
        check = await ledger.verify_consistency(unit_id, initial_quantity=quantity)
        assert check.consistent, unit_id


"""
2. Idempotence
"""

@pytest.mark.asyncio
@pytest.mark.parametrize("direction,first_synced", [
    (SyncDirection.PUSH, 3),  # nothing has been synced yet, every link is pushed
    (SyncDirection.PULL, 2),
])
async def test_second_run_changes_nothing(store, marketplace, orchestrator, direction, first_synced):
    seed_three_units(store, marketplace)

    first = await orchestrator.run_sync(direction)
    movements_after_first = list(store.movements)
    writes_after_first = list(marketplace.update_calls)

    second = await orchestrator.run_sync(direction)

    assert first.synced == first_synced
    assert second.synced == 0
    assert second.unchanged == 3
    assert second.errors == []
    assert store.movements == movements_after_first
    assert marketplace.update_calls == writes_after_first


@pytest.mark.asyncio
async def test_push_skips_remote_reads_for_synced_links(store, marketplace, orchestrator):
    store.add_unit("unit-1", sku="SKU-1", quantity=4)
    store.add_link("link-1", "unit-1", "MLA1", variation_id="V1", stock_synced=4)
    marketplace.add_item("MLA1", quantity=4, variations=[("V1", 4, "SKU-1")])

    report = await orchestrator.run_sync(SyncDirection.PUSH)

    assert report.unchanged == 1
    assert marketplace.fetch_calls == []


"""
3. Coordinate recovery and misattribution
"""

@pytest.mark.asyncio
async def test_recovers_variation_from_sku_then_pushes(store, marketplace, orchestrator):
    store.add_unit("unit-s", sku="AULM080CEF-MA-S", quantity=3)
    store.add_link("link-s", "unit-s", "MLA900")
    marketplace.add_item("MLA900", quantity=11, variations=[
        ("175000000001", 6, "AULM080CEF-MA-M"),
        ("175000000002", 5, "AULM080CEF-MA-S"),
    ])

    report = await orchestrator.run_sync(SyncDirection.PUSH)

    assert report.synced == 1
    assert store.links["link-s"].remote_variation_id == "175000000002"
    assert marketplace.variation_quantity("MLA900", "175000000002") == 3
    # The sibling variation is untouched
    assert marketplace.variation_quantity("MLA900", "175000000001") == 6


@pytest.mark.asyncio
async def test_pull_recovers_variation_by_substring_and_persists_it(store, marketplace, orchestrator):
    store.add_unit("unit-s", sku="AULM080CEF-MA-S", quantity=10)
    store.add_link("link-s", "unit-s", "MLA900")
    marketplace.add_item("MLA900", quantity=12, variations=[("MA-M", 5, None), ("MA-S", 7, None)])

    report = await orchestrator.run_sync(SyncDirection.PULL)

    assert report.errors == []
    assert report.synced == 1
    assert store.links["link-s"].remote_variation_id == "MA-S"
    assert store.quantity("unit-s") == 7
    assert [(m.delta, m.kind.value) for m in store.movements] == [(-3, "sync-reconciled")]

    again = await orchestrator.run_sync(SyncDirection.PULL)

    assert again.synced == 0
    assert again.unchanged == 1
    assert len(store.movements) == 1


@pytest.mark.asyncio
async def test_unmatched_sku_never_touches_any_variation(store, marketplace, orchestrator):
    store.add_unit("unit-x", sku="AULM080CEF-MA-XL", quantity=3)
    store.add_link("link-x", "unit-x", "MLA900")
    marketplace.add_item("MLA900", quantity=11, variations=[
        ("175000000001", 6, "AULM080CEF-MA-M"),
        ("175000000002", 5, "AULM080CEF-MA-S"),
    ])

    push = await orchestrator.run_sync(SyncDirection.PUSH)
    pull = await orchestrator.run_sync(SyncDirection.PULL)

    assert push.synced == 0 and len(push.errors) == 1
    assert pull.synced == 0 and len(pull.errors) == 1
    assert "AULM080CEF-MA-XL" in push.errors[0]
    assert marketplace.update_calls == []
    assert store.movements == []
    assert store.quantity("unit-x") == 3
    assert store.links["link-x"].remote_variation_id is None


"""
4. Failure isolation
"""

@pytest.mark.asyncio
async def test_one_failing_item_does_not_stop_the_run(store, marketplace, orchestrator):
    seed_three_units(store, marketplace)
    marketplace.failing_item_ids.add("MLA1")

    report = await orchestrator.run_sync(SyncDirection.PULL)

    assert report.total == 3
    assert report.synced == 1  # MLA3: 2 -> 0
    assert report.unchanged == 1  # MLA2 already equal
    assert len(report.errors) == 1
    assert "MLA1" in report.errors[0]
    assert report.status == SyncStatus.PARTIAL
    assert store.quantity("unit-1") == 5
    assert store.quantity("unit-3") == 0


@pytest.mark.asyncio
async def test_failed_write_is_reported_and_others_continue(store, marketplace, orchestrator):
    seed_three_units(store, marketplace)
    marketplace.failing_write_ids.add("MLA1")

    report = await orchestrator.run_sync(SyncDirection.PUSH)

    assert report.synced == 2
    assert len(report.errors) == 1
    assert store.links["link-1"].stock_synced is None
    assert marketplace.variation_quantity("MLA3", "V3") == 2


@pytest.mark.asyncio
async def test_auth_failure_fails_every_link_without_retries(store, marketplace, orchestrator):
    seed_three_units(store, marketplace)
    marketplace.auth_failure = True

    report = await orchestrator.run_sync(SyncDirection.PULL)

    assert len(report.errors) == 3
    assert report.status == SyncStatus.ERROR
    assert len(marketplace.fetch_calls) == 1


@pytest.mark.asyncio
async def test_rate_limit_fails_every_link_without_per_item_fetches(store, marketplace, orchestrator):
    seed_three_units(store, marketplace)
    marketplace.rate_limited = True

    report = await orchestrator.run_sync(SyncDirection.PULL)

    assert len(report.errors) == 3
    assert all("rate limit" in error for error in report.errors)
    assert report.status == SyncStatus.ERROR
    assert len(marketplace.fetch_calls) == 1
    assert store.movements == []


@pytest.mark.asyncio
async def test_missing_remote_item_is_reported(store, marketplace, orchestrator):
    store.add_unit("unit-1", sku="SKU-1", quantity=1)
    store.add_link("link-1", "unit-1", "MLA404")

    report = await orchestrator.run_sync(SyncDirection.PULL)

    assert report.errors == ["Item MLA404 (variant SKU-1): remote item not found on the marketplace"]


@pytest.mark.asyncio
async def test_malformed_links_are_reported(store, marketplace, orchestrator):
    store.add_unit("unit-1", sku="SKU-1", quantity=1)
    store.add_link("link-1", "unit-1", None)
    store.add_link("link-2", "ghost", "MLA2")

    report = await orchestrator.run_sync(SyncDirection.PUSH)

    assert report.total == 2
    assert len(report.errors) == 2
    assert marketplace.fetch_calls == []


@pytest.mark.asyncio
async def test_load_failure_aborts_the_run(store, orchestrator):
    store.fail_on_load = True

    with pytest.raises(SyncError):
        await orchestrator.run_sync(SyncDirection.PUSH)


"""
5. Reports and exclusivity
"""

@pytest.mark.asyncio
async def test_report_to_dict(store, marketplace, orchestrator):
    seed_three_units(store, marketplace)

    data = (await orchestrator.run_sync(SyncDirection.PUSH)).to_dict()

    assert data["success"] is True
    assert data["direction"] == "push"
    assert data["total"] == 3
    assert data["synced"] == 3
    assert data["unchanged"] == 0
    assert data["errors"] == []
    assert data["status"] == "success"
    assert data["sync_run_id"]


@pytest.mark.asyncio
async def test_concurrent_run_is_rejected(orchestrator):
    async with _lock_for(orchestrator.platform):
        with pytest.raises(SyncInProgressError):
            await run_sync_exclusive(orchestrator, SyncDirection.PUSH)


@pytest.mark.asyncio
async def test_exclusive_run_releases_lock(store, marketplace, orchestrator):
    seed_three_units(store, marketplace)

    await run_sync_exclusive(orchestrator, SyncDirection.PUSH)
    report = await run_sync_exclusive(orchestrator, SyncDirection.PUSH)

    assert report.unchanged == 3
    assert not _lock_for(orchestrator.platform).locked()
