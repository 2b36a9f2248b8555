"""SQLite persistence for DreamJar records.

Every mutation that other callers may race on is a single conditional
statement (or a single transaction) so that concurrent processes sharing
the database file need no in-process locking:

- votes are unique on (wish_id, voter_id) and inserted only while the wish
  is pending verification;
- wish status moves through compare-and-set updates guarded by the
  expected prior status;
- treasury credits are keyed on wish_id, so a second credit for the same
  wish fails on the primary key;
- proposal counters and execution are guarded updates.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .errors import ConflictError
from .models import (
    Pledge,
    Proof,
    Proposal,
    ProposalStatus,
    TreasuryCredit,
    User,
    Vote,
    Wish,
    WishStatus,
    can_transition,
)

logger = logging.getLogger(__name__)

NON_TERMINAL = tuple(s.value for s in WishStatus if not s.is_terminal)


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _json_dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _row_to_wish(row: sqlite3.Row) -> Wish:
    return Wish(
        wish_id=row["wish_id"],
        creator_id=row["creator_id"],
        title=row["title"],
        stake_amount=row["stake_amount"],
        pledge_total=row["pledge_total"],
        pledge_count=row["pledge_count"],
        deadline=_parse_ts(row["deadline"]),
        proof_method=row["proof_method"],
        status=row["status"],
        impact_on_fail_percent=row["impact_on_fail_percent"],
        impact_beneficiary=row["impact_beneficiary"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


def _row_to_proposal(row: sqlite3.Row) -> Proposal:
    return Proposal(
        proposal_id=row["proposal_id"],
        proposer_id=row["proposer_id"],
        title=row["title"],
        description=row["description"],
        plan_ref=row["plan_ref"],
        amount_requested=row["amount_requested"],
        beneficiary=row["beneficiary"],
        status=row["status"],
        votes_for=row["votes_for"],
        votes_against=row["votes_against"],
        total_votes=row["total_votes"],
        quorum_reached=bool(row["quorum_reached"]),
        deadline=_parse_ts(row["deadline"]),
        executed_at=_parse_ts(row["executed_at"]),
        executed_by=row["executed_by"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


class DreamJarStore:
    def __init__(self, db_path: Path, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users(
                  user_id TEXT PRIMARY KEY,
                  display_name TEXT
                );

                CREATE TABLE IF NOT EXISTS wishes(
                  wish_id TEXT PRIMARY KEY,
                  creator_id TEXT NOT NULL,
                  title TEXT NOT NULL,
                  stake_amount INTEGER NOT NULL CHECK(stake_amount >= 0),
                  pledge_total INTEGER NOT NULL DEFAULT 0,
                  pledge_count INTEGER NOT NULL DEFAULT 0,
                  deadline TEXT NOT NULL,
                  proof_method TEXT NOT NULL,
                  status TEXT NOT NULL,
                  impact_on_fail_percent INTEGER NOT NULL DEFAULT 0,
                  impact_beneficiary TEXT,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS pledges(
                  pledge_id TEXT PRIMARY KEY,
                  wish_id TEXT NOT NULL,
                  supporter_id TEXT NOT NULL,
                  amount INTEGER NOT NULL CHECK(amount > 0),
                  created_at TEXT NOT NULL,
                  FOREIGN KEY(wish_id) REFERENCES wishes(wish_id)
                );

                CREATE TABLE IF NOT EXISTS proofs(
                  proof_id TEXT PRIMARY KEY,
                  wish_id TEXT NOT NULL,
                  submitter_id TEXT NOT NULL,
                  method TEXT NOT NULL,
                  payload_json TEXT NOT NULL,
                  created_at TEXT NOT NULL,
                  FOREIGN KEY(wish_id) REFERENCES wishes(wish_id)
                );

                CREATE TABLE IF NOT EXISTS votes(
                  vote_id TEXT PRIMARY KEY,
                  wish_id TEXT NOT NULL,
                  voter_id TEXT NOT NULL,
                  choice TEXT NOT NULL CHECK(choice IN ('yes', 'no')),
                  weight INTEGER NOT NULL CHECK(weight >= 1),
                  created_at TEXT NOT NULL,
                  UNIQUE(wish_id, voter_id),
                  FOREIGN KEY(wish_id) REFERENCES wishes(wish_id)
                );

                CREATE TABLE IF NOT EXISTS treasury_credits(
                  wish_id TEXT PRIMARY KEY,
                  amount INTEGER NOT NULL CHECK(amount > 0),
                  beneficiary TEXT,
                  created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS proposals(
                  proposal_id INTEGER PRIMARY KEY,
                  proposer_id TEXT NOT NULL,
                  title TEXT NOT NULL,
                  description TEXT NOT NULL DEFAULT '',
                  plan_ref TEXT,
                  amount_requested INTEGER NOT NULL CHECK(amount_requested > 0),
                  beneficiary TEXT NOT NULL,
                  status TEXT NOT NULL,
                  votes_for INTEGER NOT NULL DEFAULT 0,
                  votes_against INTEGER NOT NULL DEFAULT 0,
                  total_votes INTEGER NOT NULL DEFAULT 0,
                  quorum_reached INTEGER NOT NULL DEFAULT 0,
                  deadline TEXT NOT NULL,
                  executed_at TEXT,
                  executed_by TEXT,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL,
                  CHECK(votes_for + votes_against = total_votes)
                );

                CREATE TABLE IF NOT EXISTS proposal_ballots(
                  ballot_key TEXT PRIMARY KEY,
                  proposal_id INTEGER NOT NULL,
                  voter_id TEXT NOT NULL,
                  in_favor INTEGER NOT NULL,
                  created_at TEXT NOT NULL,
                  FOREIGN KEY(proposal_id) REFERENCES proposals(proposal_id)
                );

                CREATE INDEX IF NOT EXISTS idx_wishes_status_deadline ON wishes(status, deadline);
                CREATE INDEX IF NOT EXISTS idx_wishes_creator ON wishes(creator_id);
                CREATE INDEX IF NOT EXISTS idx_pledges_wish ON pledges(wish_id);
                CREATE INDEX IF NOT EXISTS idx_pledges_supporter ON pledges(supporter_id);
                CREATE INDEX IF NOT EXISTS idx_proofs_wish ON proofs(wish_id);
                CREATE INDEX IF NOT EXISTS idx_proposals_status ON proposals(status);
                """
            )
            conn.commit()
        finally:
            conn.close()

    # -- users -------------------------------------------------------------

    def upsert_user(self, user_id: str, display_name: Optional[str] = None) -> User:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO users(user_id, display_name) VALUES(?, ?) "
                    "ON CONFLICT(user_id) DO UPDATE SET "
                    "display_name = COALESCE(excluded.display_name, users.display_name)",
                    (user_id, display_name),
                )
                row = conn.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        return User(user_id=row["user_id"], display_name=row["display_name"])

    def list_users(self) -> list[User]:
        conn = self._connect()
        try:
            rows = conn.execute("SELECT * FROM users ORDER BY rowid").fetchall()
        finally:
            conn.close()
        return [User(user_id=r["user_id"], display_name=r["display_name"]) for r in rows]

    # -- wishes ------------------------------------------------------------

    def insert_wish(self, wish: Wish) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO wishes(
                      wish_id, creator_id, title, stake_amount, pledge_total, pledge_count,
                      deadline, proof_method, status, impact_on_fail_percent,
                      impact_beneficiary, created_at, updated_at
                    )
                    VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        wish.wish_id,
                        wish.creator_id,
                        wish.title,
                        wish.stake_amount,
                        wish.pledge_total,
                        wish.pledge_count,
                        _iso(wish.deadline),
                        wish.proof_method.value,
                        wish.status.value,
                        wish.impact_on_fail_percent,
                        wish.impact_beneficiary,
                        _iso(wish.created_at),
                        _iso(wish.updated_at),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Wish already exists: {wish.wish_id}") from e
        finally:
            conn.close()

    def get_wish(self, wish_id: str) -> Optional[Wish]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM wishes WHERE wish_id = ?", (wish_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_wish(row) if row is not None else None

    def list_wishes(self, status: Optional[WishStatus] = None) -> list[Wish]:
        conn = self._connect()
        try:
            if status is None:
                rows = conn.execute("SELECT * FROM wishes ORDER BY created_at, rowid").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM wishes WHERE status = ? ORDER BY created_at, rowid",
                    (status.value,),
                ).fetchall()
        finally:
            conn.close()
        return [_row_to_wish(r) for r in rows]

    def list_expired_pending(self, now: datetime) -> list[Wish]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM wishes WHERE status = ? AND deadline < ? ORDER BY deadline",
                (WishStatus.PENDING_VERIFICATION.value, _iso(now)),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_wish(r) for r in rows]

    def transition_wish(
        self,
        wish_id: str,
        expected: WishStatus,
        target: WishStatus,
        now: datetime,
    ) -> bool:
        """Compare-and-set the wish status. Returns True only for the winning caller."""
        if not can_transition(expected, target):
            raise ValueError(f"Illegal wish transition {expected.value} -> {target.value}")
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    "UPDATE wishes SET status = ?, updated_at = ? WHERE wish_id = ? AND status = ?",
                    (target.value, _iso(now), wish_id, expected.value),
                )
                if cur.rowcount != 1:
                    logger.debug(f"Wish {wish_id} not in {expected.value}; skipped transition to {target.value}")
                    return False
                return True
        finally:
            conn.close()

    def insert_proof_and_transition(self, proof: Proof, now: datetime) -> bool:
        """Persist a proof and move its wish active -> pending_verification in one transaction.

        Returns False (and persists nothing) if the wish was no longer active.
        """
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    "UPDATE wishes SET status = ?, updated_at = ? WHERE wish_id = ? AND status = ?",
                    (
                        WishStatus.PENDING_VERIFICATION.value,
                        _iso(now),
                        proof.wish_id,
                        WishStatus.ACTIVE.value,
                    ),
                )
                if cur.rowcount != 1:
                    conn.rollback()
                    return False
                conn.execute(
                    """
                    INSERT INTO proofs(proof_id, wish_id, submitter_id, method, payload_json, created_at)
                    VALUES(?, ?, ?, ?, ?, ?)
                    """,
                    (
                        proof.proof_id,
                        proof.wish_id,
                        proof.submitter_id,
                        proof.method,
                        _json_dumps(proof.payload.model_dump(mode="json")),
                        _iso(proof.created_at),
                    ),
                )
            return True
        finally:
            conn.close()

    def list_proofs(self, wish_id: str) -> list[Proof]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM proofs WHERE wish_id = ? ORDER BY created_at", (wish_id,)
            ).fetchall()
        finally:
            conn.close()
        return [
            Proof(
                proof_id=r["proof_id"],
                wish_id=r["wish_id"],
                submitter_id=r["submitter_id"],
                payload=json.loads(r["payload_json"]),
                created_at=_parse_ts(r["created_at"]),
            )
            for r in rows
        ]

    # -- pledges -----------------------------------------------------------

    def insert_pledge(self, pledge: Pledge) -> bool:
        """Record a pledge and bump wish totals while the wish is non-terminal.

        Returns False (and records nothing) if the wish is terminal or unknown.
        """
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    f"""
                    UPDATE wishes
                    SET pledge_total = pledge_total + ?, pledge_count = pledge_count + 1, updated_at = ?
                    WHERE wish_id = ? AND status IN ({",".join("?" for _ in NON_TERMINAL)})
                    """,
                    (pledge.amount, _iso(pledge.created_at), pledge.wish_id, *NON_TERMINAL),
                )
                if cur.rowcount != 1:
                    conn.rollback()
                    return False
                conn.execute(
                    "INSERT INTO pledges(pledge_id, wish_id, supporter_id, amount, created_at) VALUES(?, ?, ?, ?, ?)",
                    (
                        pledge.pledge_id,
                        pledge.wish_id,
                        pledge.supporter_id,
                        pledge.amount,
                        _iso(pledge.created_at),
                    ),
                )
            return True
        finally:
            conn.close()

    def has_pledge(self, wish_id: str, supporter_id: str) -> bool:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT 1 FROM pledges WHERE wish_id = ? AND supporter_id = ? LIMIT 1",
                (wish_id, supporter_id),
            ).fetchone()
        finally:
            conn.close()
        return row is not None

    def list_pledges(self, wish_id: Optional[str] = None) -> list[Pledge]:
        conn = self._connect()
        try:
            if wish_id is None:
                rows = conn.execute("SELECT * FROM pledges ORDER BY created_at, rowid").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM pledges WHERE wish_id = ? ORDER BY created_at, rowid", (wish_id,)
                ).fetchall()
        finally:
            conn.close()
        return [
            Pledge(
                pledge_id=r["pledge_id"],
                wish_id=r["wish_id"],
                supporter_id=r["supporter_id"],
                amount=r["amount"],
                created_at=_parse_ts(r["created_at"]),
            )
            for r in rows
        ]

    # -- votes -------------------------------------------------------------

    def insert_vote(self, vote: Vote) -> bool:
        """Insert a vote while the wish is pending verification.

        Returns False if the wish is not pending verification.
        Raises ConflictError if the voter already voted on this wish.
        """
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    """
                    INSERT INTO votes(vote_id, wish_id, voter_id, choice, weight, created_at)
                    SELECT ?, ?, ?, ?, ?, ?
                    WHERE EXISTS (SELECT 1 FROM wishes WHERE wish_id = ? AND status = ?)
                    """,
                    (
                        vote.vote_id,
                        vote.wish_id,
                        vote.voter_id,
                        vote.choice.value,
                        vote.weight,
                        _iso(vote.created_at),
                        vote.wish_id,
                        WishStatus.PENDING_VERIFICATION.value,
                    ),
                )
                return cur.rowcount == 1
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"User {vote.voter_id} has already voted on wish {vote.wish_id}") from e
        finally:
            conn.close()

    def tally_votes(self, wish_id: str) -> tuple[int, int, int]:
        """Return raw (total, yes, no) vote counts for a wish."""
        conn = self._connect()
        try:
            row = conn.execute(
                """
                SELECT
                  COUNT(1) AS total,
                  COALESCE(SUM(CASE WHEN choice = 'yes' THEN 1 ELSE 0 END), 0) AS yes,
                  COALESCE(SUM(CASE WHEN choice = 'no' THEN 1 ELSE 0 END), 0) AS no
                FROM votes WHERE wish_id = ?
                """,
                (wish_id,),
            ).fetchone()
        finally:
            conn.close()
        return int(row["total"]), int(row["yes"]), int(row["no"])

    def list_votes(self, wish_id: str) -> list[Vote]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM votes WHERE wish_id = ? ORDER BY created_at, rowid", (wish_id,)
            ).fetchall()
        finally:
            conn.close()
        return [
            Vote(
                vote_id=r["vote_id"],
                wish_id=r["wish_id"],
                voter_id=r["voter_id"],
                choice=r["choice"],
                weight=r["weight"],
                created_at=_parse_ts(r["created_at"]),
            )
            for r in rows
        ]

    # -- treasury ----------------------------------------------------------

    def insert_credit(self, credit: TreasuryCredit) -> None:
        """Record a treasury credit. The wish_id primary key is the idempotency key."""
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT INTO treasury_credits(wish_id, amount, beneficiary, created_at) VALUES(?, ?, ?, ?)",
                    (credit.wish_id, credit.amount, credit.beneficiary, _iso(credit.created_at)),
                )
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"Wish {credit.wish_id} has already been credited to the treasury") from e
        finally:
            conn.close()

    def get_credit(self, wish_id: str) -> Optional[TreasuryCredit]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM treasury_credits WHERE wish_id = ?", (wish_id,)).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        return TreasuryCredit(
            wish_id=row["wish_id"],
            amount=row["amount"],
            beneficiary=row["beneficiary"],
            created_at=_parse_ts(row["created_at"]),
        )

    def list_credits(self) -> list[TreasuryCredit]:
        conn = self._connect()
        try:
            rows = conn.execute("SELECT * FROM treasury_credits ORDER BY created_at, rowid").fetchall()
        finally:
            conn.close()
        return [
            TreasuryCredit(
                wish_id=r["wish_id"],
                amount=r["amount"],
                beneficiary=r["beneficiary"],
                created_at=_parse_ts(r["created_at"]),
            )
            for r in rows
        ]

    def list_failed_uncredited(self) -> list[Wish]:
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT w.* FROM wishes w
                LEFT JOIN treasury_credits c ON c.wish_id = w.wish_id
                WHERE w.status = ? AND c.wish_id IS NULL
                ORDER BY w.updated_at
                """,
                (WishStatus.FAILED.value,),
            ).fetchall()
        finally:
            conn.close()
        return [_row_to_wish(r) for r in rows]

    def treasury_totals(self) -> dict[str, int]:
        conn = self._connect()
        try:
            row = conn.execute(
                """
                SELECT
                  (SELECT COALESCE(SUM(amount), 0) FROM treasury_credits) AS total_funds,
                  (SELECT COALESCE(SUM(amount_requested), 0) FROM proposals WHERE status = 'executed')
                    AS allocated_funds,
                  (SELECT COUNT(1) FROM proposals) AS total_proposals,
                  (SELECT COUNT(1) FROM proposals WHERE status = 'active') AS active_proposals,
                  (SELECT COUNT(1) FROM proposals WHERE status = 'executed') AS executed_proposals
                """
            ).fetchone()
        finally:
            conn.close()
        return {key: int(row[key]) for key in row.keys()}

    # -- proposals ---------------------------------------------------------

    def insert_proposal(
        self,
        *,
        proposer_id: str,
        title: str,
        description: str,
        plan_ref: Optional[str],
        amount_requested: int,
        beneficiary: str,
        deadline: datetime,
        now: datetime,
    ) -> Proposal:
        """Insert a proposal with the next sequential id (MAX + 1, assigned inside the insert)."""
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    """
                    INSERT INTO proposals(
                      proposal_id, proposer_id, title, description, plan_ref,
                      amount_requested, beneficiary, status, deadline, created_at, updated_at
                    )
                    VALUES((SELECT COALESCE(MAX(proposal_id), 0) + 1 FROM proposals), ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        proposer_id,
                        title,
                        description,
                        plan_ref,
                        amount_requested,
                        beneficiary,
                        ProposalStatus.ACTIVE.value,
                        _iso(deadline),
                        _iso(now),
                        _iso(now),
                    ),
                )
                proposal_id = cur.lastrowid
                row = conn.execute("SELECT * FROM proposals WHERE proposal_id = ?", (proposal_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_proposal(row)

    def get_proposal(self, proposal_id: int) -> Optional[Proposal]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM proposals WHERE proposal_id = ?", (proposal_id,)).fetchone()
        finally:
            conn.close()
        return _row_to_proposal(row) if row is not None else None

    def list_proposals(
        self,
        status: Optional[ProposalStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Proposal]:
        conn = self._connect()
        try:
            if status is None:
                rows = conn.execute(
                    "SELECT * FROM proposals ORDER BY created_at DESC, proposal_id DESC LIMIT ? OFFSET ?",
                    (limit, offset),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM proposals WHERE status = ? "
                    "ORDER BY created_at DESC, proposal_id DESC LIMIT ? OFFSET ?",
                    (status.value, limit, offset),
                ).fetchall()
        finally:
            conn.close()
        return [_row_to_proposal(r) for r in rows]

    def record_proposal_vote(
        self,
        *,
        proposal_id: int,
        voter_id: str,
        in_favor: bool,
        ballot_key: str,
        quorum_threshold: int,
        now: datetime,
    ) -> bool:
        """Record a ballot and update counters in one transaction.

        The counter update is guarded by ``status = 'active' AND deadline >= now``;
        returns False (recording nothing) when the guard fails. Once total votes
        reach the quorum the proposal is settled to passed/failed in the same
        transaction.

        Raises ConflictError when ``ballot_key`` was already used.
        """
        ts = _iso(now)
        column = "votes_for" if in_favor else "votes_against"
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    f"""
                    UPDATE proposals
                    SET {column} = {column} + 1, total_votes = total_votes + 1, updated_at = ?
                    WHERE proposal_id = ? AND status = ? AND deadline >= ?
                    """,
                    (ts, proposal_id, ProposalStatus.ACTIVE.value, ts),
                )
                if cur.rowcount != 1:
                    conn.rollback()
                    return False
                conn.execute(
                    "INSERT INTO proposal_ballots(ballot_key, proposal_id, voter_id, in_favor, created_at) "
                    "VALUES(?, ?, ?, ?, ?)",
                    (ballot_key, proposal_id, voter_id, int(in_favor), ts),
                )
                conn.execute(
                    """
                    UPDATE proposals
                    SET quorum_reached = 1,
                        status = CASE WHEN votes_for > votes_against THEN ? ELSE ? END,
                        updated_at = ?
                    WHERE proposal_id = ? AND status = ? AND total_votes >= ?
                    """,
                    (
                        ProposalStatus.PASSED.value,
                        ProposalStatus.FAILED.value,
                        ts,
                        proposal_id,
                        ProposalStatus.ACTIVE.value,
                        quorum_threshold,
                    ),
                )
            return True
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"User {voter_id} has already voted on proposal {proposal_id}") from e
        finally:
            conn.close()

    def execute_proposal(self, proposal_id: int, executor_id: str, now: datetime) -> bool:
        """Mark a passed proposal executed if its deadline has passed and funds suffice.

        Single guarded UPDATE: the funds check and the status change cannot
        interleave with another execution.
        """
        ts = _iso(now)
        conn = self._connect()
        try:
            with conn:
                cur = conn.execute(
                    """
                    UPDATE proposals
                    SET status = ?, executed_at = ?, executed_by = ?, updated_at = ?
                    WHERE proposal_id = ?
                      AND status = ?
                      AND executed_at IS NULL
                      AND deadline < ?
                      AND amount_requested <= (
                        (SELECT COALESCE(SUM(amount), 0) FROM treasury_credits)
                        - (SELECT COALESCE(SUM(amount_requested), 0) FROM proposals WHERE status = ?)
                      )
                    """,
                    (
                        ProposalStatus.EXECUTED.value,
                        ts,
                        executor_id,
                        ts,
                        proposal_id,
                        ProposalStatus.PASSED.value,
                        ts,
                        ProposalStatus.EXECUTED.value,
                    ),
                )
                return cur.rowcount == 1
        finally:
            conn.close()
