# tests/test_scan_processor.py
"""Scan processing against a real (SQLite) store: counters, alerts, broadcasts, failure handling."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import threading
import pytest
from datetime import datetime
from unittest.mock import MagicMock, patch
from crowdwatch.errors import AreaNotFound, StoreError
from crowdwatch.models.alert import Alert
from crowdwatch.models.area import Area
from crowdwatch.models.enums import AlertKind, AlertStatus, AreaStatus, ScanKind
from crowdwatch.models.scan_log import ScanLog
from crowdwatch.services import alert_service
from crowdwatch.services.rapid_inflow import RapidInflowWindow
from crowdwatch.services.scan_processor import ScanProcessor
from crowdwatch.services.status import AreaSnapshot


def drain(subscriber):
    messages = []
    while not subscriber.queue.empty():
        messages.append(subscriber.queue.get_nowait())
    return messages


def alerts_of(db, area_id, kind=None):
    q = db.query(Alert).filter(Alert.area_id == area_id)
    if kind:
        q = q.filter(Alert.kind == kind.value)
    return q.all()


@pytest.fixture
def processor(broadcaster, inflow_window):
    return ScanProcessor(broadcaster, inflow_window)


class TestScenarios:
    @pytest.mark.asyncio
    async def test_capacity_overflow(self, db, make_area, processor):
        area = make_area(capacity=2, threshold=2)

        results = [await processor.process(db, area.id, ScanKind.ENTRY) for _ in range(3)]

        assert [r.new_count for r in results] == [1, 2, 3]
        assert [r.area.status for r in results] == [AreaStatus.GREEN, AreaStatus.RED, AreaStatus.RED]
        assert [len(r.opened_alerts) for r in results] == [0, 1, 0]
        overcrowding = alerts_of(db, area.id, AlertKind.OVERCROWDING)
        assert len(overcrowding) == 1
        assert overcrowding[0].current_count == 2
        assert overcrowding[0].status == AlertStatus.UNREAD.value
        assert alerts_of(db, area.id, AlertKind.THRESHOLD_BREACH) == []

    @pytest.mark.asyncio
    async def test_threshold_then_auto_resolve_on_exit(self, db, make_area, processor):
        area = make_area(capacity=5, threshold=3)

        results = [await processor.process(db, area.id, ScanKind.ENTRY) for _ in range(4)]
        assert [r.new_count for r in results] == [1, 2, 3, 4]
        assert [r.area.status for r in results] == [AreaStatus.GREEN, AreaStatus.GREEN,
                                                    AreaStatus.YELLOW, AreaStatus.YELLOW]
        assert [len(r.opened_alerts) for r in results] == [0, 0, 1, 0]
        assert alerts_of(db, area.id, AlertKind.OVERCROWDING) == []

        first_exit = await processor.process(db, area.id, ScanKind.EXIT)
        assert first_exit.new_count == 3
        assert first_exit.area.status == AreaStatus.YELLOW
        (breach,) = alerts_of(db, area.id, AlertKind.THRESHOLD_BREACH)
        assert breach.status == AlertStatus.UNREAD.value

        second_exit = await processor.process(db, area.id, ScanKind.EXIT)
        assert second_exit.new_count == 2
        assert second_exit.area.status == AreaStatus.GREEN
        db.refresh(breach)
        assert breach.status == AlertStatus.RESOLVED.value
        assert breach.resolved_at is not None

    @pytest.mark.asyncio
    async def test_exit_on_empty_area_is_clamped(self, db, make_area, processor, broadcaster):
        area = make_area(capacity=10, threshold=5)
        sub = broadcaster.register()
        broadcaster.subscribe(sub, f"area/{area.id}")

        result = await processor.process(db, area.id, ScanKind.EXIT)

        assert result.new_count == 0
        assert db.query(ScanLog).filter(ScanLog.area_id == area.id, ScanLog.kind == "EXIT").count() == 1
        assert alerts_of(db, area.id) == []
        (message,) = drain(sub)
        assert message["topic"] == f"area/{area.id}"
        assert message["payload"]["currentCount"] == 0
        assert message["payload"]["status"] == "GREEN"

    @pytest.mark.asyncio
    async def test_rapid_inflow_opens_once_per_open_alert(self, db, make_area, broadcaster):
        now = [0.0]
        processor = ScanProcessor(broadcaster, RapidInflowWindow(count=10, seconds=30),
                                  monotonic=lambda: now[0])
        area = make_area(capacity=1000, threshold=1000)

        async def burst(start):
            opened = []
            for i in range(10):
                now[0] = start + i * 0.5
                result = await processor.process(db, area.id, ScanKind.ENTRY)
                opened.extend(result.opened_alerts)
            return opened

        first = await burst(0)
        assert [a.kind for a in first] == [AlertKind.RAPID_INFLOW.value]

        now[0] = 5.0
        eleventh = await processor.process(db, area.id, ScanKind.ENTRY)
        assert eleventh.opened_alerts == []

        # Quiet for 30s+, but the first alert is still open
        assert await burst(40) == []

        alert_service.resolve(db, first[0].id, area.owner_email)
        assert len(await burst(80)) == 1
        assert len(alerts_of(db, area.id, AlertKind.RAPID_INFLOW)) == 2
        assert alerts_of(db, area.id, AlertKind.OVERCROWDING) == []

    @pytest.mark.asyncio
    async def test_exit_does_not_feed_inflow_window(self, db, make_area, processor, inflow_window):
        area = make_area(capacity=100, threshold=100, current_count=50)
        for _ in range(12):
            await processor.process(db, area.id, ScanKind.EXIT)
        assert inflow_window.size(area.id) == 0


class TestBroadcasts:
    @pytest.mark.asyncio
    async def test_messages_after_commit_in_order(self, db, make_area, processor, broadcaster):
        area = make_area(capacity=1, threshold=1)
        sub = broadcaster.register()
        for topic in ("areas", "scans", "alerts"):
            broadcaster.subscribe(sub, topic)

        await processor.process(db, area.id, ScanKind.ENTRY)

        messages = drain(sub)
        assert [m["topic"] for m in messages] == ["areas", "scans", "alerts"]
        assert messages[1]["payload"] == {"areaId": area.id, "kind": "ENTRY", "newCount": 1}
        alert = messages[2]["payload"]
        assert alert["kind"] == "OVERCROWDING"
        assert alert["critical"] is True
        assert alert["severity"] == "Critical"
        assert alert["areaName"] == area.name

    @pytest.mark.asyncio
    async def test_scan_log_uses_processor_clock(self, db, make_area, broadcaster, inflow_window):
        fixed = datetime(2026, 6, 1, 12, 30)
        processor = ScanProcessor(broadcaster, inflow_window, clock=lambda: fixed)
        area = make_area()

        result = await processor.process(db, area.id, ScanKind.ENTRY)

        assert result.timestamp == fixed
        assert db.get(ScanLog, result.scan_log_id).timestamp == fixed


class TestFailures:
    @pytest.mark.asyncio
    async def test_unknown_area(self, db, processor, broadcaster):
        sub = broadcaster.register()
        broadcaster.subscribe(sub, "scans")

        with pytest.raises(AreaNotFound) as exc:
            await processor.process(db, 999, ScanKind.ENTRY)

        assert exc.value.area_id == 999
        assert db.query(ScanLog).count() == 0
        assert drain(sub) == []

    @pytest.mark.asyncio
    async def test_store_failure_rolls_back_and_broadcasts_nothing(self):
        db = MagicMock()
        broadcaster = MagicMock()
        snapshot = AreaSnapshot(id=1, name="Hall", owner_email="o@x.com", event_id=None,
                                capacity=5, threshold=3, current_count=0)
        processor = ScanProcessor(broadcaster, RapidInflowWindow())

        with patch("crowdwatch.services.scan_processor.store") as store:
            store.get_area_by_id_public.return_value = snapshot
            store.increment_count.side_effect = StoreError("Store operation 'increment_count' failed")
            with pytest.raises(StoreError):
                await processor.process(db, 1, ScanKind.ENTRY)

        db.rollback.assert_called_once()
        db.commit.assert_not_called()
        broadcaster.publish_area_update.assert_not_called()
        broadcaster.publish_scan_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_alert_failure_does_not_fail_scan(self, db, make_area, processor, broadcaster):
        area = make_area(capacity=1, threshold=1)
        sub = broadcaster.register()
        broadcaster.subscribe(sub, "scans")

        with patch("crowdwatch.services.scan_processor.apply_decision", side_effect=RuntimeError("boom")):
            result = await processor.process(db, area.id, ScanKind.ENTRY)

        assert result.new_count == 1
        assert result.opened_alerts == []
        db.expire_all()
        assert db.get(Area, area.id).current_count == 1
        assert db.query(ScanLog).filter(ScanLog.area_id == area.id).count() == 1
        assert alerts_of(db, area.id) == []
        assert len(drain(sub)) == 1

    @pytest.mark.asyncio
    async def test_broadcast_failure_is_only_logged(self, db, make_area, inflow_window):
        broadcaster = MagicMock()
        broadcaster.publish_area_update.side_effect = RuntimeError("socket gone")
        processor = ScanProcessor(broadcaster, inflow_window)
        area = make_area()

        result = await processor.process(db, area.id, ScanKind.ENTRY)

        assert result.new_count == 1
        db.expire_all()
        assert db.get(Area, area.id).current_count == 1


class TestEventLoop:
    @pytest.mark.asyncio
    async def test_database_work_does_not_block_the_loop(self):
        """While a scan waits on the database, other coroutines keep running."""
        db = MagicMock()
        broadcaster = MagicMock()
        snapshot = AreaSnapshot(id=1, name="Hall", owner_email="o@x.com", event_id=None,
                                capacity=5, threshold=3, current_count=1)
        processor = ScanProcessor(broadcaster, RapidInflowWindow())
        released = threading.Event()
        woken_by_loop = []

        def slow_increment(db, area_id):
            # Times out instead of hanging if the loop is stuck behind this call
            woken_by_loop.append(released.wait(timeout=2))
            return 1

        async def other_work():
            await asyncio.sleep(0.01)
            released.set()

        with patch("crowdwatch.services.scan_processor.store") as store:
            store.get_area_by_id_public.return_value = snapshot
            store.increment_count.side_effect = slow_increment
            store.append_scan_log.return_value = 7
            store.lock_area.return_value = snapshot
            result, _ = await asyncio.gather(processor.process(db, 1, ScanKind.ENTRY), other_work())

        assert woken_by_loop == [True]
        assert result.new_count == 1
        db.commit.assert_called_once()
        broadcaster.publish_scan_event.assert_called_once_with(1, "ENTRY", 1)

    @pytest.mark.asyncio
    async def test_broadcasts_happen_on_the_loop_thread(self, db, make_area, inflow_window):
        loop_thread = threading.get_ident()
        publish_threads = []
        broadcaster = MagicMock()
        broadcaster.publish_area_update.side_effect = lambda payload: publish_threads.append(threading.get_ident())
        transaction_threads = []
        processor = ScanProcessor(broadcaster, inflow_window)
        run_transaction = processor._run_transaction

        def recording_transaction(*args):
            transaction_threads.append(threading.get_ident())
            return run_transaction(*args)

        area = make_area()
        with patch.object(processor, "_run_transaction", side_effect=recording_transaction):
            await processor.process(db, area.id, ScanKind.ENTRY)

        assert transaction_threads and transaction_threads[0] != loop_thread
        assert publish_threads == [loop_thread]
