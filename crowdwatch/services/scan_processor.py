# crowdwatch/services/scan_processor.py
"""
Scan processing — one ENTRY / EXIT scan against an Area.

Inside one transaction (run in the threadpool, the event loop never waits on the database):
  1. verify the Area exists                 (AreaNotFound otherwise)
  2. atomic counter update                  (+1, or -1 clamped at 0)
  3. append the scan log
  4. re-read the Area under a row lock      (authoritative snapshot)
  5. feed the rapid-inflow window (ENTRY) and apply the alert rules inside a SAVEPOINT
  6. commit
After commit, back on the event loop: area-update, scan-event and one alert message
per newly opened alert. The broadcaster is only ever touched from the loop.

Anything failing in 1-4 or 6 rolls the whole scan back and nothing is broadcast.
Alert failures roll back only the savepoint; broadcast failures are only logged.
The transaction runs to completion in its worker thread even if the caller disconnects.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from crowdwatch.errors import AreaNotFound
from crowdwatch.models.alert import Alert
from crowdwatch.models.enums import ScanKind
from crowdwatch.schemas.alert import AlertOut
from crowdwatch.schemas.area import AreaOut
from crowdwatch.services import store
from crowdwatch.services.alert_rules import evaluate
from crowdwatch.services.alert_service import apply_decision
from crowdwatch.services.broadcaster import Broadcaster
from crowdwatch.services.rapid_inflow import RapidInflowWindow
from crowdwatch.services.status import AreaSnapshot
from crowdwatch.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ScanResult:
    scan_log_id: int
    kind: ScanKind
    timestamp: datetime
    new_count: int
    area: AreaSnapshot
    opened_alerts: List[Alert] = field(default_factory=list)
    alert_payloads: List[dict] = field(default_factory=list)


class ScanProcessor:
    def __init__(self, broadcaster: Broadcaster, inflow_window: RapidInflowWindow,
                 clock: Callable[[], datetime] = datetime.utcnow,
                 monotonic: Callable[[], float] = time.monotonic):
        self.broadcaster = broadcaster
        self.inflow_window = inflow_window
        self.clock = clock
        self.monotonic = monotonic

    async def process(self, db: Session, area_id: int, kind: ScanKind) -> ScanResult:
        kind = ScanKind(kind)
        result = await run_in_threadpool(self._run_scan, db, area_id, kind)

        logger.info(f"[SCAN] {kind.value} area={area_id} ({result.area.name}) → "
                    f"{result.new_count}/{result.area.capacity} {result.area.status.value}")
        self._broadcast(result)
        return result

    def _run_scan(self, db: Session, area_id: int, kind: ScanKind) -> ScanResult:
        """Blocking part of a scan. Runs in a worker thread."""
        try:
            result = self._run_transaction(db, area_id, kind)
        except Exception:
            db.rollback()
            raise
        result.alert_payloads = self._alert_payloads(result)
        return result

    def _run_transaction(self, db: Session, area_id: int, kind: ScanKind) -> ScanResult:
        if store.get_area_by_id_public(db, area_id) is None:
            raise AreaNotFound(area_id)

        now = self.clock()
        if kind == ScanKind.ENTRY:
            new_count = store.increment_count(db, area_id)
        else:
            new_count = store.decrement_count(db, area_id)

        log_id = store.append_scan_log(db, area_id, kind, now)
        snapshot = store.lock_area(db, area_id)

        opened = self._apply_alerts(db, snapshot, kind, now)
        db.commit()

        return ScanResult(scan_log_id=log_id, kind=kind, timestamp=now,
                          new_count=new_count, area=snapshot, opened_alerts=opened)

    def _apply_alerts(self, db: Session, snapshot: AreaSnapshot, kind: ScanKind, now: datetime) -> List[Alert]:
        """Alert failures must not fail a scan whose counter update is about to commit."""
        try:
            with db.begin_nested():
                rapid = False
                if kind == ScanKind.ENTRY:
                    rapid = self.inflow_window.record_entry(snapshot.id, self.monotonic())
                decision = evaluate(snapshot, kind, rapid_inflow=rapid)
                if not decision:
                    return []
                return apply_decision(db, snapshot, decision, now,
                                      self.inflow_window.count, self.inflow_window.seconds)
        except Exception as e:
            logger.error(f"[SCAN] alert evaluation failed for area {snapshot.id}: {e}", exc_info=True)
            return []

    def _alert_payloads(self, result: ScanResult) -> List[dict]:
        # Serialized here because reading an alert's Area/Event may hit the database
        try:
            return [AlertOut.model_validate(alert).model_dump(by_alias=True, mode="json")
                    for alert in result.opened_alerts]
        except Exception as e:
            logger.error(f"[SCAN] could not serialize alerts for area {result.area.id}: {e}", exc_info=True)
            return []

    def _broadcast(self, result: ScanResult):
        try:
            self.broadcaster.publish_area_update(
                AreaOut.from_area(result.area).model_dump(by_alias=True, mode="json"))
            self.broadcaster.publish_scan_event(result.area.id, result.kind.value, result.new_count)
            for payload in result.alert_payloads:
                self.broadcaster.publish_alert(payload)
        except Exception as e:
            logger.error(f"[SCAN] broadcast failed for area {result.area.id}: {e}", exc_info=True)
