import asyncio

import pytest

from conftest import FakePriceStream, make_config, wait_until
from kalshi_watch.providers.core.exceptions import (OrderSubmissionError,
                                                    PositionFetchError,
                                                    StreamConnectionError)
from kalshi_watch.schemas import (ExecutionOutcome, Side, WatcherStatus,
                                  WatchKey, WatchMode)
from kalshi_watch.services.actions import AlertAction
from kalshi_watch.services.registry import WatcherRegistry


async def started(registry, streams, config, credentials):
    watcher = await registry.start(config, credentials)
    await asyncio.wait_for(streams[-1].opened.wait(), 1)
    await wait_until(lambda: watcher.status is WatcherStatus.ACTIVE)
    return watcher, streams[-1]


async def test_alert_fires_once_then_removes_itself(registry, streams, notifier, credentials, monkeypatch):
    closed_at_removal = []
    discard = registry._discard

    def recording_discard(watcher):
        closed_at_removal.append(watcher._stream.closed)
        discard(watcher)

    monkeypatch.setattr(registry, "_discard", recording_discard)

    config = make_config(WatchMode.ALERT, base=0.50, threshold=10)
    watcher, stream = await started(registry, streams, config, credentials)

    stream.push(yes_price=0.52)
    stream.push(yes_price=0.0)
    stream.push(yes_price=0.55)
    stream.push(yes_price=0.60)
    await wait_until(lambda: len(registry) == 0)
    await watcher.wait_closed()

    assert len(notifier.sent) == 1
    user_id, sent = notifier.sent[0]
    assert user_id == "alice"
    assert sent.current_price == 0.55
    assert watcher.status is WatcherStatus.TRIGGERED
    assert closed_at_removal == [True]


async def test_start_supersedes_same_key(registry, streams, notifier, credentials):
    first, first_stream = await started(registry, streams, make_config(base=0.50), credentials)
    second, second_stream = await started(registry, streams, make_config(base=0.60), credentials)
    await first.wait_closed()

    assert first_stream.closed
    assert first.cancelled
    assert not second_stream.closed
    assert len(registry) == 1
    assert registry.get(second.key) is second

    # The old stream is gone: only the new base price matters now.
    second_stream.push(yes_price=0.56)
    await asyncio.sleep(0.05)
    assert notifier.sent == []
    second_stream.push(yes_price=0.66)
    await wait_until(lambda: len(notifier.sent) == 1)
    assert notifier.sent[0][1].entry_price == 0.60


async def test_keys_are_independent(registry, streams, credentials):
    await started(registry, streams, make_config(side=Side.YES), credentials)
    await started(registry, streams, make_config(side=Side.NO), credentials)
    await started(registry, streams, make_config(ticker="TICKER-Z"), credentials)
    await started(registry, streams, make_config(user_id="bob"), credentials)

    assert len(registry) == 4
    assert sorted(registry.list("alice")) == sorted(
        [
            WatchKey("alice", "TICKER-A", Side.YES),
            WatchKey("alice", "TICKER-A", Side.NO),
            WatchKey("alice", "TICKER-Z", Side.YES),
        ]
    )


async def test_stop_is_idempotent(registry, streams, notifier, credentials):
    watcher, stream = await started(registry, streams, make_config(), credentials)

    assert await registry.stop(watcher.key) is True
    assert await registry.stop(watcher.key) is False
    assert await registry.stop(WatchKey("nobody", "X", Side.YES)) is False
    await watcher.wait_closed()

    assert stream.closed
    assert watcher.status is WatcherStatus.CLOSED
    assert registry.list("alice") == []
    assert notifier.sent == []


async def test_stop_all_only_touches_that_user(registry, streams, credentials):
    await started(registry, streams, make_config(side=Side.YES), credentials)
    await started(registry, streams, make_config(side=Side.NO), credentials)
    bob, bob_stream = await started(registry, streams, make_config(user_id="bob"), credentials)

    assert await registry.stop_all("alice") == 2
    assert await registry.stop_all("alice") == 0
    assert registry.list("alice") == []
    assert registry.list("bob") == [bob.key]
    assert not bob_stream.closed


async def test_stop_during_execution_prevents_order(registry, streams, order_client, notifier, credentials):
    order_client.position_gate = asyncio.Event()
    config = make_config(WatchMode.STOP_LOSS, ticker="TICKER-B", side=Side.NO, base=0.60, threshold=20)
    watcher, stream = await started(registry, streams, config, credentials)

    stream.push(no_price=0.48)
    await wait_until(lambda: order_client.position_calls == ["TICKER-B"])
    assert await registry.stop(config.key) is True
    order_client.position_gate.set()
    await watcher.wait_closed()

    assert order_client.orders == []
    assert len(notifier.sent) == 1
    assert notifier.sent[0][1].execution.outcome is ExecutionOutcome.CANCELLED
    assert len(registry) == 0


async def test_connection_failure_removes_watcher(order_client, notifier, credentials):
    def failing(config, _credentials):
        return FakePriceStream(config.ticker, open_error=StreamConnectionError("refused"))

    registry = WatcherRegistry(
        failing,
        {mode: AlertAction(notifier, order_client) for mode in WatchMode},
    )
    watcher = await registry.start(make_config(), credentials)
    await watcher.wait_closed()

    assert watcher.status is WatcherStatus.ERROR
    assert len(registry) == 0
    assert notifier.sent == []


async def test_notification_failure_does_not_affect_other_watchers(registry, streams, notifier, credentials):
    healthy, healthy_stream = await started(registry, streams, make_config(side=Side.YES), credentials)
    broken, broken_stream = await started(registry, streams, make_config(side=Side.NO), credentials)

    broken_stream.push(no_price=0.99, ticker="TICKER-A")
    notifier.error = RuntimeError("chat client down")
    await wait_until(lambda: broken.done)
    notifier.error = None

    healthy_stream.push(yes_price=0.55)
    await wait_until(lambda: registry.get(healthy.key) is None)
    assert len(notifier.sent) == 1
    assert broken.status is WatcherStatus.TRIGGERED


async def test_close_stops_everything(registry, streams, credentials):
    await started(registry, streams, make_config(side=Side.YES), credentials)
    await started(registry, streams, make_config(user_id="bob"), credentials)

    await registry.close()

    assert len(registry) == 0
    assert all(stream.closed for stream in streams)


def test_every_mode_needs_an_action(notifier, order_client):
    with pytest.raises(ValueError):
        WatcherRegistry(lambda c, k: None, {WatchMode.ALERT: AlertAction(notifier, order_client)})


STOP_LOSS_NO = make_config(WatchMode.STOP_LOSS, ticker="TICKER-B", side=Side.NO, base=0.60, threshold=20)


@pytest.mark.parametrize(
    "error, reason",
    [
        (OrderSubmissionError("Kalshi API error 400: insufficient balance"), "Kalshi API error 400: insufficient balance"),
        (AttributeError("'list' object has no attribute 'get'"), "'list' object has no attribute 'get'"),
    ],
)
async def test_order_failure_is_notified_and_removes_watcher(
    registry, streams, order_client, notifier, credentials, error, reason
):
    order_client.order_error = error
    watcher, stream = await started(registry, streams, STOP_LOSS_NO, credentials)

    stream.push(no_price=0.48)
    stream.push(no_price=0.40)
    await wait_until(lambda: len(registry) == 0)
    await watcher.wait_closed()

    assert order_client.orders == [("TICKER-B", Side.NO, 5)]
    assert len(notifier.sent) == 1
    execution = notifier.sent[0][1].execution
    assert execution.outcome is ExecutionOutcome.ORDER_FAILED
    assert execution.error_reason == reason
    assert execution.quantity == 5
    assert watcher.status is WatcherStatus.TRIGGERED
    assert registry.get(STOP_LOSS_NO.key) is None


async def test_fetch_failure_is_notified_with_its_reason(registry, streams, order_client, notifier, credentials):
    order_client.position_error = PositionFetchError("Could not reach Kalshi API: connection refused")
    watcher, stream = await started(registry, streams, STOP_LOSS_NO, credentials)

    stream.push(no_price=0.30)
    await wait_until(lambda: len(registry) == 0)
    await watcher.wait_closed()

    assert order_client.orders == []
    assert len(notifier.sent) == 1
    execution = notifier.sent[0][1].execution
    assert execution.outcome is ExecutionOutcome.FETCH_FAILED
    assert execution.error_reason == "Could not reach Kalshi API: connection refused"


async def test_consecutive_triggering_ticks_run_the_pipeline_once(
    registry, streams, order_client, notifier, credentials
):
    watcher, stream = await started(registry, streams, STOP_LOSS_NO, credentials)

    stream.push(no_price=0.48)
    stream.push(no_price=0.40)
    stream.push(no_price=0.35)
    await wait_until(lambda: len(registry) == 0)
    await watcher.wait_closed()
    await asyncio.sleep(0.05)

    assert order_client.position_calls == ["TICKER-B"]
    assert order_client.orders == [("TICKER-B", Side.NO, 5)]
    assert len(notifier.sent) == 1
    assert notifier.sent[0][1].current_price == 0.48


async def test_slow_close_does_not_block_other_keys(registry, streams, credentials):
    alice, alice_stream = await started(registry, streams, make_config(), credentials)
    alice_stream.close_gate = asyncio.Event()

    stopping = asyncio.create_task(registry.stop(alice.key))
    await wait_until(lambda: alice_stream.close_count == 1)

    bob = await asyncio.wait_for(registry.start(make_config(user_id="bob"), credentials), 1)
    assert registry.get(bob.key) is bob
    assert await asyncio.wait_for(registry.stop(bob.key), 1) is True
    # Removal still waits for the close to finish.
    assert registry.get(alice.key) is alice
    assert not stopping.done()

    alice_stream.close_gate.set()
    assert await stopping is True
    assert registry.get(alice.key) is None
    assert alice_stream.closed


async def test_start_waits_for_same_key_close(registry, streams, credentials):
    first, first_stream = await started(registry, streams, make_config(base=0.50), credentials)
    first_stream.close_gate = asyncio.Event()

    replacing = asyncio.create_task(registry.start(make_config(base=0.60), credentials))
    await wait_until(lambda: first_stream.close_count == 1)
    await asyncio.sleep(0.02)
    assert not replacing.done()
    assert len(streams) == 1

    first_stream.close_gate.set()
    second = await replacing
    assert first_stream.closed
    assert registry.get(second.key) is second
    assert second.config.base_price == 0.60
