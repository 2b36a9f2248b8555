"""Append-only audit ledger for DreamJar state transitions."""

import json
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from rich.console import Console

from .models.ledger import AuditEvent

console = Console(stderr=True)


class AuditLedgerWriter:
    """Appends AuditEvents to a JSONL file, one event per line.

    The file is opened in append mode for every event and never rewritten,
    so several processes may share one audit log.
    """

    def __init__(self, ledger_path: Path, run_id: Optional[str] = None):
        self.ledger_path = Path(ledger_path)
        # Groups the events written by one process
        self.run_id = run_id or str(uuid.uuid4())

    def append_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        subject_id: Optional[str] = None,
    ) -> AuditEvent:
        """Append one event.

        Args:
            event_type: Event name (proof_submitted, vote_cast, ...)
            payload: Event-specific data
            subject_id: Wish or proposal id the event concerns

        Returns:
            The written AuditEvent
        """
        event = AuditEvent(
            event_id=str(uuid.uuid4()),
            run_id=self.run_id,
            ts=datetime.now(timezone.utc),
            event_type=event_type,
            subject_id=subject_id,
            payload=payload,
        )
        line = json.dumps(event.model_dump(mode="json"), ensure_ascii=False)

        self.ledger_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.ledger_path, "a", encoding="utf-8") as f:
            f.write(line + "\n")
        return event


def iter_audit_events(ledger_path: Path) -> Iterator[AuditEvent]:
    """Yield every well-formed event in file order.

    Malformed lines are reported on stderr and skipped.
    """
    if not ledger_path.exists():
        return

    skipped = 0
    with open(ledger_path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                yield AuditEvent.model_validate_json(line)
            except ValueError as e:
                skipped += 1
                console.print(f"[yellow]Warning: skipping malformed audit line {lineno}: {e}[/yellow]")

    if skipped:
        console.print(f"[yellow]Skipped {skipped} malformed line(s) in {ledger_path}[/yellow]")


def read_audit_tail(ledger_path: Path, n: int = 20, event_type: Optional[str] = None) -> list[AuditEvent]:
    """Return the last ``n`` events, optionally only those of one type."""
    events = iter_audit_events(ledger_path)
    if event_type:
        events = (e for e in events if e.event_type == event_type)
    return list(deque(events, maxlen=n))
