# crowdwatch/services/alert_rules.py
"""
Alert rules — pure decisions, evaluated on the Area snapshot re-read after the counter update.

ENTRY:
  count >= capacity   → open OVERCROWDING
  else count >= threshold → open THRESHOLD_BREACH
  rapid-inflow window tripped → open RAPID_INFLOW (independent of the two above)
EXIT:
  count < threshold → resolve THRESHOLD_BREACH
  count < capacity  → resolve OVERCROWDING
RAPID_INFLOW is never auto-resolved: it records that a surge happened.
"""

from dataclasses import dataclass, field
from typing import List

from crowdwatch.models.enums import AlertKind, ScanKind
from crowdwatch.services.status import AreaSnapshot


@dataclass
class AlertDecision:
    open: List[AlertKind] = field(default_factory=list)
    resolve: List[AlertKind] = field(default_factory=list)

    def __bool__(self):
        return bool(self.open or self.resolve)


def evaluate(snapshot: AreaSnapshot, kind: ScanKind, rapid_inflow: bool = False) -> AlertDecision:
    decision = AlertDecision()
    count = snapshot.current_count

    if kind == ScanKind.ENTRY:
        if count >= snapshot.capacity:
            decision.open.append(AlertKind.OVERCROWDING)
        elif count >= snapshot.threshold:
            decision.open.append(AlertKind.THRESHOLD_BREACH)
        if rapid_inflow:
            decision.open.append(AlertKind.RAPID_INFLOW)
    else:
        if count < snapshot.threshold:
            decision.resolve.append(AlertKind.THRESHOLD_BREACH)
        if count < snapshot.capacity:
            decision.resolve.append(AlertKind.OVERCROWDING)

    return decision


def build_message(kind: AlertKind, snapshot: AreaSnapshot,
                  inflow_count: int = 10, inflow_seconds: float = 30) -> str:
    """Human-readable alert text. Clients should render from kind + snapshot fields instead."""
    pct = round(snapshot.occupancy_pct)
    pair = f"({snapshot.current_count}/{snapshot.capacity})"
    if kind == AlertKind.OVERCROWDING:
        return f"{snapshot.name} is overcrowded at {pct}% capacity {pair}"
    if kind == AlertKind.THRESHOLD_BREACH:
        return f"{snapshot.name} has breached threshold at {pct}% capacity {pair}"
    return (f"Rapid inflow detected at {snapshot.name} - {inflow_count} entries "
            f"in {int(inflow_seconds)} seconds, now at {pct}% capacity {pair}")
