"""Periodic reconciliation of wishes whose deadline passed without activity.

Deadlines are otherwise only evaluated when someone votes or checks a
wish. Run ``reconcile`` from a scheduler to settle stragglers and to
credit any failed wish whose treasury credit was never written.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .errors import DreamJarError
from .models import ResolutionOutcome, TreasuryCredit
from .resolution import ResolutionEngine
from .treasury import ImpactTreasury

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    resolved: list[ResolutionOutcome] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    credits: list[TreasuryCredit] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


def reconcile(engine: ResolutionEngine, treasury: Optional[ImpactTreasury] = None) -> ReconcileReport:
    report = ReconcileReport()

    for wish in engine.store.list_expired_pending(engine.clock()):
        try:
            outcome = engine.resolve(wish.wish_id)
        except DreamJarError as e:
            engine.monitor.error(f"Failed to reconcile wish {wish.wish_id}", e)
            report.errors[wish.wish_id] = str(e)
            continue
        if outcome.transitioned:
            report.resolved.append(outcome)
        else:
            report.skipped.append(wish.wish_id)

    report.credits = (treasury or engine.treasury).process_failed_wishes()
    logger.info(
        f"Reconciled {len(report.resolved)} wish(es), skipped {len(report.skipped)}, "
        f"credited {len(report.credits)}"
    )
    return report
