import asyncio

import pytest

from cafe.core.errors import (
    ConfirmationRequiredError,
    InvalidTransitionError,
    OrderError,
    OrderNotFoundError,
    StoreError,
    TerminalStateError,
    UpdateInFlightError,
    WriteDroppedError,
)
from cafe.controllers.kitchen import FEED_ERROR, KitchenView
from cafe.models.order import OrderStatus

from fakes import FlakyChangeFeed


async def eventually(predicate, timeout=1.0):
    async def _wait():
        while not predicate():
            await asyncio.sleep(0.01)
    await asyncio.wait_for(_wait(), timeout)


def test_refresh_excludes_completed_orders(store, kitchen_view):
    placed = store.seed_order("s1")
    ready = store.seed_order("s2", status=OrderStatus.READY)
    store.seed_order("s1", status=OrderStatus.COMPLETED)

    orders = asyncio.run(kitchen_view.refresh())

    assert [o.id for o in orders] == [ready.id, placed.id]
    assert all(o.status != OrderStatus.COMPLETED for o in orders)
    assert kitchen_view.error is None
    assert kitchen_view.loading is False


def test_confirmed_update_is_applied_locally(store, kitchen_view):
    order = store.seed_order("s1")
    asyncio.run(kitchen_view.refresh())
    fetches = store.fetch_calls

    updated = asyncio.run(kitchen_view.update_status(order.id, OrderStatus.ACCEPTED))

    assert updated.status == OrderStatus.ACCEPTED
    assert kitchen_view.find(order.id).status == OrderStatus.ACCEPTED
    assert store.fetch_calls == fetches
    assert store.status_of(order.id) == OrderStatus.ACCEPTED
    assert order.id not in kitchen_view.updating


def test_scenario_a_walks_the_whole_chain(store, kitchen_view):
    order = store.seed_order("s1")
    asyncio.run(kitchen_view.refresh())

    for status in ("ACCEPTED", "PREPARING", "READY", "COMPLETED"):
        updated = asyncio.run(kitchen_view.update_status(order.id, status))
        assert updated.status.value == status

    for status in OrderStatus:
        with pytest.raises(TerminalStateError) as exc:
            asyncio.run(kitchen_view.update_status(order.id, status))
        assert "terminal state" in exc.value.message

    asyncio.run(kitchen_view.refresh())
    assert kitchen_view.find(order.id) is None


def test_scenario_b_skipping_a_step_fails(store, kitchen_view):
    order = store.seed_order("s1")
    asyncio.run(kitchen_view.refresh())

    with pytest.raises(InvalidTransitionError) as exc:
        asyncio.run(kitchen_view.update_status(order.id, OrderStatus.PREPARING))

    assert "PLACED" in exc.value.message
    assert "PREPARING" in exc.value.message
    assert kitchen_view.find(order.id).status == OrderStatus.PLACED
    assert store.status_of(order.id) == OrderStatus.PLACED
    assert store.update_calls == []


def test_scenario_c_moving_backward_fails(store, kitchen_view):
    order = store.seed_order("s1", status=OrderStatus.READY)
    asyncio.run(kitchen_view.refresh())

    with pytest.raises(InvalidTransitionError):
        asyncio.run(kitchen_view.update_status(order.id, OrderStatus.PREPARING))

    assert kitchen_view.find(order.id).status == OrderStatus.READY
    assert store.status_of(order.id) == OrderStatus.READY


def test_scenario_e_reject_skips_the_chain(store, kitchen_view):
    order = store.seed_order("s1")
    asyncio.run(kitchen_view.refresh())

    rejected = asyncio.run(kitchen_view.reject(order.id, confirmed=True))

    assert rejected.status == OrderStatus.COMPLETED
    assert store.status_of(order.id) == OrderStatus.COMPLETED
    asyncio.run(kitchen_view.refresh())
    assert kitchen_view.find(order.id) is None


def test_reject_requires_confirmation(store, kitchen_view):
    order = store.seed_order("s1")
    asyncio.run(kitchen_view.refresh())

    with pytest.raises(ConfirmationRequiredError):
        asyncio.run(kitchen_view.reject(order.id))

    assert store.update_calls == []
    assert kitchen_view.find(order.id).status == OrderStatus.PLACED


def test_reject_does_not_reopen_completed_orders(store, kitchen_view):
    order = store.seed_order("s1", status=OrderStatus.READY)
    asyncio.run(kitchen_view.refresh())
    asyncio.run(kitchen_view.update_status(order.id, OrderStatus.COMPLETED))

    with pytest.raises(TerminalStateError):
        asyncio.run(kitchen_view.reject(order.id, confirmed=True))


def test_unknown_order_is_not_found(store, kitchen_view):
    asyncio.run(kitchen_view.refresh())

    with pytest.raises(OrderNotFoundError):
        asyncio.run(kitchen_view.update_status("missing-order", OrderStatus.ACCEPTED))

    assert store.update_calls == []


def test_order_missing_from_board_is_not_found(store, kitchen_view):
    asyncio.run(kitchen_view.refresh())
    order = store.seed_order("s1")

    with pytest.raises(OrderNotFoundError):
        asyncio.run(kitchen_view.update_status(order.id, OrderStatus.ACCEPTED))


def test_zero_row_write_is_reported_as_dropped(store, kitchen_view):
    order = store.seed_order("s1")
    store.blocked_updates.add(order.id)
    asyncio.run(kitchen_view.refresh())
    before = kitchen_view.find(order.id)

    with pytest.raises(WriteDroppedError) as exc:
        asyncio.run(kitchen_view.update_status(order.id, OrderStatus.ACCEPTED))

    assert "silently dropped" in exc.value.message
    assert kitchen_view.find(order.id) == before
    assert store.status_of(order.id) == OrderStatus.PLACED
    assert order.id not in kitchen_view.updating


def test_transport_error_leaves_board_unchanged(store, kitchen_view):
    order = store.seed_order("s1")
    asyncio.run(kitchen_view.refresh())
    store.fail_updates = True

    with pytest.raises(StoreError) as exc:
        asyncio.run(kitchen_view.update_status(order.id, OrderStatus.ACCEPTED))

    assert "network unreachable" in exc.value.message
    assert kitchen_view.find(order.id).status == OrderStatus.PLACED
    assert order.id not in kitchen_view.updating


def test_second_update_while_first_in_flight_is_refused(store, kitchen_view):
    first = store.seed_order("s1")
    second = store.seed_order("s2")

    async def scenario():
        await kitchen_view.refresh()
        store.update_gate = asyncio.Event()

        pending = asyncio.create_task(kitchen_view.update_status(first.id, OrderStatus.ACCEPTED))
        await eventually(lambda: first.id in kitchen_view.updating)

        with pytest.raises(UpdateInFlightError):
            await kitchen_view.update_status(first.id, OrderStatus.ACCEPTED)

        other = asyncio.create_task(kitchen_view.update_status(second.id, OrderStatus.ACCEPTED))
        await eventually(lambda: second.id in kitchen_view.updating)

        store.update_gate.set()
        return await pending, await other

    updated_first, updated_second = asyncio.run(scenario())

    assert updated_first.status == OrderStatus.ACCEPTED
    assert updated_second.status == OrderStatus.ACCEPTED
    assert len(store.update_calls) == 2
    assert kitchen_view.updating == set()


def test_failed_fetch_keeps_last_good_board(store, kitchen_view):
    order = store.seed_order("s1")
    asyncio.run(kitchen_view.refresh())
    store.fail_fetches = True

    orders = asyncio.run(kitchen_view.refresh())

    assert [o.id for o in orders] == [order.id]
    assert kitchen_view.error == "Failed to load orders. Please refresh."

    store.fail_fetches = False
    asyncio.run(kitchen_view.refresh())
    assert kitchen_view.error is None


def test_filtered_board(store, kitchen_view):
    placed = store.seed_order("s1")
    ready = store.seed_order("s2", status=OrderStatus.READY)
    asyncio.run(kitchen_view.refresh())

    assert [o.id for o in kitchen_view.filtered("ready")] == [ready.id]
    assert [o.id for o in kitchen_view.filtered(OrderStatus.PLACED)] == [placed.id]
    assert len(kitchen_view.filtered("all")) == 2
    assert len(kitchen_view.filtered()) == 2
    with pytest.raises(OrderError):
        kitchen_view.filtered("CANCELLED")


def test_change_notification_triggers_refresh(store, feed, kitchen_view):
    seen = []

    async def listener(orders):
        seen.append([o.id for o in orders])

    kitchen_view.add_listener(listener)

    async def scenario():
        await kitchen_view.refresh()
        kitchen_view.start()
        await feed.wait_for_subscribers()

        order = store.seed_order("s1")
        await eventually(lambda: kitchen_view.find(order.id) is not None)
        await eventually(lambda: seen)
        await kitchen_view.stop()
        return order

    order = asyncio.run(scenario())

    assert seen[-1] == [order.id]
    assert feed.subscribers == []


def test_failing_listener_does_not_stop_the_board(store, feed, kitchen_view):
    async def broken(orders):
        raise RuntimeError("socket closed")

    kitchen_view.add_listener(broken)

    async def scenario():
        kitchen_view.start()
        await feed.wait_for_subscribers()
        first = store.seed_order("s1")
        await eventually(lambda: kitchen_view.find(first.id) is not None)
        second = store.seed_order("s2")
        await eventually(lambda: kitchen_view.find(second.id) is not None)
        await kitchen_view.stop()

    asyncio.run(scenario())
    assert len(kitchen_view.orders) == 2


def test_dropped_feed_shows_banner_until_refresh_resubscribes(store, feed):
    flaky = FlakyChangeFeed(feed)
    view = KitchenView(store, flaky)

    async def scenario():
        task = view.start()
        await eventually(task.done)
        assert task.exception() is None
        assert view.error == FEED_ERROR
        assert not view.is_live

        await view.refresh()
        assert view.error is None
        await feed.wait_for_subscribers()
        assert view.is_live

        order = store.seed_order("s1")
        await eventually(lambda: view.find(order.id) is not None)
        await view.stop()

    asyncio.run(scenario())
    assert flaky.attempts == 2


def test_unexpected_refresh_failure_stops_feed_with_banner(store, feed, kitchen_view):
    async def broken_fetch():
        raise ValueError("1 validation error for Order")

    async def scenario():
        task = kitchen_view.start()
        await feed.wait_for_subscribers()
        store.fetch_active_orders = broken_fetch
        store.seed_order("s1")
        await eventually(task.done)
        return task

    task = asyncio.run(scenario())

    assert task.exception() is None
    assert kitchen_view.error == FEED_ERROR
    assert feed.subscribers == []
