"""SQLite database initialization and CRUD operations.

Besides plain CRUD this module owns the three pieces of shared mutable
state that concurrent tasks touch:
  - task status, changed only through conditional UPDATEs that enforce
    the transition table in models.transitions
  - the credit ledger, debited inside BEGIN IMMEDIATE transactions and
    unique per (task_id, phase)
  - the step ledger, recording each finished workflow step's output so
    a re-run can skip it
"""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from config.exceptions import (
    DatabaseError,
    InsufficientCreditsError,
    InvalidTransitionError,
    TaskNotFoundError,
    WorkflowError,
)
from models.credits import CreditsBalance, CreditsTransaction, credits_to_cents, cents_to_credits
from models.deck import Card, Deck, Flashcard
from models.document import DocumentOutline
from models.enums import (
    ACTIVE_STATUSES, BillingPhase, SourceType, TaskStatus, TransactionType, UserPlan,
)
from models.task import GenerationTask
from models.transitions import sources_for

logger = logging.getLogger(__name__)

# SQL for creating all tables
_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS generation_tasks (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    user_plan TEXT DEFAULT 'free',
    status TEXT NOT NULL DEFAULT 'pending',
    source_type TEXT NOT NULL,
    source_content TEXT,
    source_url TEXT,
    source_filename TEXT,
    document_text TEXT,
    document_outline TEXT,
    selected_chapters TEXT,
    total_chunks INTEGER DEFAULT 0,
    completed_chunks INTEGER DEFAULT 0,
    credits_cost_cents INTEGER DEFAULT 0,
    indexing_cost_cents INTEGER DEFAULT 0,
    card_count INTEGER DEFAULT 0,
    error_message TEXT,
    deck_id INTEGER REFERENCES decks(id),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    started_at TIMESTAMP,
    completed_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS decks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS cards (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    deck_id INTEGER NOT NULL REFERENCES decks(id) ON DELETE CASCADE,
    front TEXT NOT NULL,
    back TEXT NOT NULL,
    sort_index INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS credits_balance (
    user_id TEXT PRIMARY KEY,
    balance_cents INTEGER NOT NULL DEFAULT 0,
    total_earned_cents INTEGER NOT NULL DEFAULT 0,
    total_spent_cents INTEGER NOT NULL DEFAULT 0,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS credits_transactions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    amount_cents INTEGER NOT NULL,
    task_id TEXT,
    phase TEXT,
    description TEXT DEFAULT '',
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS task_steps (
    task_id TEXT NOT NULL REFERENCES generation_tasks(id),
    step_name TEXT NOT NULL,
    output TEXT,
    completed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (task_id, step_name)
);
"""

# Indexes and constraints added via migration (idempotent)
_MIGRATION_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_created ON generation_tasks(user_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_status ON generation_tasks(user_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_cards_deck_sort ON cards(deck_id, sort_index)",
    "CREATE INDEX IF NOT EXISTS idx_decks_user ON decks(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_credits_tx_user ON credits_transactions(user_id, created_at)",
    # One debit per task per billing phase
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_credits_tx_task_phase "
    "ON credits_transactions(task_id, phase) WHERE task_id IS NOT NULL",
]

_TERMINAL = (TaskStatus.COMPLETED.value, TaskStatus.FAILED.value)

# Columns that callers may write through transition_task() / update_task()
_WRITABLE_TASK_FIELDS = {
    "source_filename",
    "document_text",
    "document_outline",
    "selected_chapters",
    "total_chunks",
    "error_message",
    "card_count",
}

_STAMP_COLUMNS = {"started_at", "completed_at"}

_COST_COLUMN_BY_PHASE = {
    BillingPhase.FIXED.value: "credits_cost_cents",
    BillingPhase.CREATION.value: "credits_cost_cents",
    BillingPhase.INDEXING.value: "indexing_cost_cents",
}


def _encode_task_fields(fields: dict) -> dict:
    encoded = {}
    for key, value in fields.items():
        if key not in _WRITABLE_TASK_FIELDS:
            raise ValueError(f"Unknown or read-only task field: {key}")
        if key == "document_outline" and value is not None:
            if isinstance(value, DocumentOutline):
                value = value.to_dict()
            value = json.dumps(value, ensure_ascii=False)
        elif key == "selected_chapters" and value is not None:
            value = json.dumps([int(i) for i in value])
        encoded[key] = value
    if ("document_text" in encoded) != ("document_outline" in encoded):
        raise ValueError("document_text and document_outline must be written together")
    return encoded


class Database:
    """SQLite database manager for generation tasks, decks, and credits."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self, isolation_level: Optional[str] = "") -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30, isolation_level=isolation_level)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _get_conn(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise DatabaseError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Write transaction that takes the database write lock up front.

        Reads inside the block therefore see the latest committed state
        and no other writer can interleave before COMMIT.
        """
        conn = self._connect(isolation_level=None)
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            raise DatabaseError(f"Database transaction failed: {e}") from e
        finally:
            conn.close()

    def _init_db(self):
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.executescript(_CREATE_TABLES_SQL)
        finally:
            conn.close()
        self._migrate()

    def _migrate(self):
        """Apply idempotent schema migrations (indexes, constraints)."""
        with self._get_conn() as conn:
            for sql in _MIGRATION_SQL:
                try:
                    conn.execute(sql)
                except sqlite3.OperationalError as e:
                    logger.debug("Migration skipped (already applied): %s", e)

    # ---- Task CRUD ----

    def create_task(self, task: GenerationTask) -> str:
        task_id = task.id or uuid.uuid4().hex
        with self._get_conn() as conn:
            conn.execute(
                "INSERT INTO generation_tasks (id, user_id, user_plan, status, source_type, "
                "source_content, source_url, source_filename) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (task_id, task.user_id, UserPlan(task.user_plan).value,
                 TaskStatus.PENDING.value, SourceType(task.source_type).value,
                 task.source_content, task.source_url, task.source_filename),
            )
        task.id = task_id
        task.status = TaskStatus.PENDING
        logger.info("Task %s created (source=%s, user=%s)", task_id, task.source_type, task.user_id)
        return task_id

    def get_task(self, task_id: str) -> Optional[GenerationTask]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM generation_tasks WHERE id = ?", (task_id,)).fetchone()
            if not row:
                return None
            return self._row_to_task(row)

    def require_task(self, task_id: str) -> GenerationTask:
        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def list_tasks(self, user_id: str, limit: int = 50) -> list[GenerationTask]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM generation_tasks WHERE user_id = ? "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]

    def count_active_tasks(self, user_id: str) -> int:
        placeholders = ", ".join("?" for _ in ACTIVE_STATUSES)
        with self._get_conn() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS n FROM generation_tasks "
                f"WHERE user_id = ? AND status IN ({placeholders})",
                (user_id, *[s.value for s in ACTIVE_STATUSES]),
            ).fetchone()
            return row["n"]

    def transition_task(
        self,
        task_id: str,
        target: TaskStatus | str,
        stamp: Optional[str] = None,
        **fields,
    ) -> GenerationTask:
        """Move a task to ``target`` and write ``fields`` in the same statement.

        The UPDATE only matches when the current status is an allowed
        source for ``target``, so concurrent callers cannot both win.

        Raises:
            TaskNotFoundError: No such task.
            InvalidTransitionError: Current status does not allow ``target``.
        """
        target = TaskStatus(target)
        encoded = _encode_task_fields(fields)
        if target == TaskStatus.OUTLINE_READY and not (
            encoded.get("document_text") is not None and encoded.get("document_outline") is not None
        ):
            raise ValueError("outline_ready requires document_text and document_outline")
        if stamp is not None and stamp not in _STAMP_COLUMNS:
            raise ValueError(f"Unknown timestamp column: {stamp}")

        sets = ["status = ?"] + [f"{k} = ?" for k in encoded]
        params: list = [target.value, *encoded.values()]
        if stamp:
            sets.append(f"{stamp} = CURRENT_TIMESTAMP")
        sources = [s.value for s in sources_for(target)]
        placeholders = ", ".join("?" for _ in sources)

        with self._transaction() as conn:
            cursor = conn.execute(
                f"UPDATE generation_tasks SET {', '.join(sets)} "
                f"WHERE id = ? AND status IN ({placeholders})",
                (*params, task_id, *sources),
            )
            if cursor.rowcount == 0:
                row = conn.execute(
                    "SELECT status FROM generation_tasks WHERE id = ?", (task_id,)
                ).fetchone()
                if row is None:
                    raise TaskNotFoundError(task_id)
                raise InvalidTransitionError(task_id, row["status"], target.value)
            row = conn.execute("SELECT * FROM generation_tasks WHERE id = ?", (task_id,)).fetchone()
        logger.info("Task %s -> %s", task_id, target.value)
        return self._row_to_task(row)

    def update_task(self, task_id: str, **fields) -> None:
        """Write fields on a non-terminal task without changing its status."""
        encoded = _encode_task_fields(fields)
        if not encoded:
            return
        sets = ", ".join(f"{k} = ?" for k in encoded)
        with self._transaction() as conn:
            cursor = conn.execute(
                f"UPDATE generation_tasks SET {sets} WHERE id = ? AND status NOT IN (?, ?)",
                (*encoded.values(), task_id, *_TERMINAL),
            )
            if cursor.rowcount == 0:
                row = conn.execute(
                    "SELECT status FROM generation_tasks WHERE id = ?", (task_id,)
                ).fetchone()
                if row is None:
                    raise TaskNotFoundError(task_id)
                raise WorkflowError(
                    f"Task {task_id} is {row['status']} and can no longer be modified",
                    {"task_id": task_id},
                )

    def fail_task(self, task_id: str, error_message: str) -> bool:
        """Mark a non-terminal task failed. Returns False if it was already terminal."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE generation_tasks SET status = ?, error_message = ?, "
                "completed_at = CURRENT_TIMESTAMP WHERE id = ? AND status NOT IN (?, ?)",
                (TaskStatus.FAILED.value, error_message, task_id, *_TERMINAL),
            )
            changed = cursor.rowcount > 0
        if changed:
            logger.warning("Task %s failed: %s", task_id, error_message)
        return changed

    def increment_completed_chunks(self, task_id: str) -> int:
        """Atomically bump the progress counter; never exceeds total_chunks."""
        with self._transaction() as conn:
            return self._bump_completed_chunks(conn, task_id)

    def _bump_completed_chunks(self, conn: sqlite3.Connection, task_id: str) -> int:
        conn.execute(
            "UPDATE generation_tasks SET completed_chunks = completed_chunks + 1 "
            "WHERE id = ? AND status = ? AND completed_chunks < total_chunks",
            (task_id, TaskStatus.GENERATING.value),
        )
        return self._completed_chunks(conn, task_id)

    @staticmethod
    def _completed_chunks(conn: sqlite3.Connection, task_id: str) -> int:
        row = conn.execute(
            "SELECT completed_chunks FROM generation_tasks WHERE id = ?", (task_id,)
        ).fetchone()
        if row is None:
            raise TaskNotFoundError(task_id)
        return row["completed_chunks"]

    def complete_task_with_deck(
        self,
        task_id: str,
        deck: Deck,
        flashcards: list[Flashcard],
    ) -> int:
        """Persist a deck with its cards and mark the task completed, atomically.

        Re-running against an already completed task returns its deck id
        without writing a second deck.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT status, deck_id FROM generation_tasks WHERE id = ?", (task_id,)
            ).fetchone()
            if row is None:
                raise TaskNotFoundError(task_id)
            if row["status"] == TaskStatus.COMPLETED.value and row["deck_id"] is not None:
                return row["deck_id"]
            if row["status"] not in {s.value for s in sources_for(TaskStatus.COMPLETED)}:
                raise InvalidTransitionError(task_id, row["status"], TaskStatus.COMPLETED.value)

            cursor = conn.execute(
                "INSERT INTO decks (user_id, title, description) VALUES (?, ?, ?)",
                (deck.user_id, deck.title, deck.description),
            )
            deck_id = cursor.lastrowid
            conn.executemany(
                "INSERT INTO cards (deck_id, front, back, sort_index) VALUES (?, ?, ?, ?)",
                [(deck_id, c.front, c.back, i) for i, c in enumerate(flashcards)],
            )
            conn.execute(
                "UPDATE generation_tasks SET status = ?, deck_id = ?, card_count = ?, "
                "completed_at = CURRENT_TIMESTAMP WHERE id = ?",
                (TaskStatus.COMPLETED.value, deck_id, len(flashcards), task_id),
            )
        logger.info("Task %s completed: deck %d with %d cards", task_id, deck_id, len(flashcards))
        return deck_id

    def _row_to_task(self, row) -> GenerationTask:
        outline = row["document_outline"]
        selected = row["selected_chapters"]
        return GenerationTask(
            id=row["id"], user_id=row["user_id"],
            user_plan=UserPlan(row["user_plan"] or UserPlan.FREE.value),
            status=TaskStatus(row["status"]),
            source_type=SourceType(row["source_type"]),
            source_content=row["source_content"],
            source_url=row["source_url"],
            source_filename=row["source_filename"],
            document_text=row["document_text"],
            document_outline=DocumentOutline.from_dict(json.loads(outline)) if outline else None,
            selected_chapters=json.loads(selected) if selected else None,
            total_chunks=row["total_chunks"] or 0,
            completed_chunks=row["completed_chunks"] or 0,
            credits_cost=cents_to_credits(row["credits_cost_cents"] or 0),
            indexing_cost=cents_to_credits(row["indexing_cost_cents"] or 0),
            card_count=row["card_count"] or 0,
            error_message=row["error_message"],
            deck_id=row["deck_id"],
            created_at=row["created_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
        )

    # ---- Deck / Card CRUD ----

    def get_deck(self, deck_id: int) -> Optional[Deck]:
        with self._get_conn() as conn:
            row = conn.execute("SELECT * FROM decks WHERE id = ?", (deck_id,)).fetchone()
            if not row:
                return None
            return Deck(
                id=row["id"], user_id=row["user_id"], title=row["title"],
                description=row["description"], created_at=row["created_at"],
            )

    def list_decks(self, user_id: str) -> list[Deck]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM decks WHERE user_id = ? ORDER BY id DESC", (user_id,)
            ).fetchall()
            return [
                Deck(
                    id=r["id"], user_id=r["user_id"], title=r["title"],
                    description=r["description"], created_at=r["created_at"],
                )
                for r in rows
            ]

    def get_cards(self, deck_id: int) -> list[Card]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM cards WHERE deck_id = ? ORDER BY sort_index, id",
                (deck_id,),
            ).fetchall()
            return [
                Card(
                    id=r["id"], deck_id=r["deck_id"], front=r["front"], back=r["back"],
                    sort_index=r["sort_index"], created_at=r["created_at"],
                )
                for r in rows
            ]

    # ---- Credits ----

    def get_balance(self, user_id: str) -> CreditsBalance:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM credits_balance WHERE user_id = ?", (user_id,)
            ).fetchone()
            if not row:
                return CreditsBalance(user_id=user_id)
            return CreditsBalance(
                user_id=row["user_id"],
                balance=cents_to_credits(row["balance_cents"]),
                total_earned=cents_to_credits(row["total_earned_cents"]),
                total_spent=cents_to_credits(row["total_spent_cents"]),
                updated_at=row["updated_at"],
            )

    def grant_credits(self, user_id: str, amount: float, description: str = "") -> float:
        """Add credits to a user's balance. Returns the new balance."""
        cents = credits_to_cents(amount)
        if cents <= 0:
            raise ValueError("Grant amount must be positive")
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO credits_balance (user_id, balance_cents, total_earned_cents) "
                "VALUES (?, ?, ?) ON CONFLICT(user_id) DO UPDATE SET "
                "balance_cents = balance_cents + excluded.balance_cents, "
                "total_earned_cents = total_earned_cents + excluded.total_earned_cents, "
                "updated_at = CURRENT_TIMESTAMP",
                (user_id, cents, cents),
            )
            conn.execute(
                "INSERT INTO credits_transactions (user_id, type, amount_cents, description) "
                "VALUES (?, ?, ?, ?)",
                (user_id, TransactionType.GRANT.value, cents, description),
            )
            row = conn.execute(
                "SELECT balance_cents FROM credits_balance WHERE user_id = ?", (user_id,)
            ).fetchone()
        return cents_to_credits(row["balance_cents"])

    def debit_credits(
        self,
        user_id: str,
        amount: float,
        task_id: str,
        phase: BillingPhase | str,
        description: str = "",
    ) -> bool:
        """Charge a task for one billing phase, at most once.

        Read, check, decrement and ledger insert all happen inside one
        BEGIN IMMEDIATE transaction, so two tasks of the same user cannot
        both pass the balance check against a stale balance.

        Returns:
            True if the debit was applied, False if this (task, phase)
            was already charged.

        Raises:
            InsufficientCreditsError: Balance is below ``amount``; nothing is written.
        """
        phase = BillingPhase(phase).value
        cents = credits_to_cents(amount)
        with self._transaction() as conn:
            existing = conn.execute(
                "SELECT id FROM credits_transactions WHERE task_id = ? AND phase = ?",
                (task_id, phase),
            ).fetchone()
            if existing:
                logger.info("Debit for task %s phase %s already recorded, skipping", task_id, phase)
                return False

            row = conn.execute(
                "SELECT balance_cents FROM credits_balance WHERE user_id = ?", (user_id,)
            ).fetchone()
            available = row["balance_cents"] if row else 0
            if available < cents:
                raise InsufficientCreditsError(
                    required=cents_to_credits(cents), available=cents_to_credits(available)
                )

            conn.execute(
                "UPDATE credits_balance SET balance_cents = balance_cents - ?, "
                "total_spent_cents = total_spent_cents + ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE user_id = ?",
                (cents, cents, user_id),
            )
            conn.execute(
                "INSERT INTO credits_transactions (user_id, type, amount_cents, task_id, phase, description) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (user_id, TransactionType.DEBIT.value, cents, task_id, phase, description),
            )
            conn.execute(
                f"UPDATE generation_tasks SET {_COST_COLUMN_BY_PHASE[phase]} = ? WHERE id = ?",
                (cents, task_id),
            )
        logger.info("Debited %.2f credits from %s for task %s (%s)", amount, user_id, task_id, phase)
        return True

    def has_debit(self, task_id: str, phase: BillingPhase | str) -> bool:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT 1 FROM credits_transactions WHERE task_id = ? AND phase = ?",
                (task_id, BillingPhase(phase).value),
            ).fetchone()
            return row is not None

    def list_transactions(self, user_id: str, limit: int = 50) -> list[CreditsTransaction]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT * FROM credits_transactions WHERE user_id = ? ORDER BY id DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
            return [
                CreditsTransaction(
                    id=r["id"], user_id=r["user_id"], type=TransactionType(r["type"]),
                    amount=cents_to_credits(r["amount_cents"]), task_id=r["task_id"],
                    phase=r["phase"], description=r["description"] or "",
                    created_at=r["created_at"],
                )
                for r in rows
            ]

    # ---- Step ledger ----

    def get_step(self, task_id: str, step_name: str) -> Optional[dict]:
        """Return the recorded output of a finished step, or None if it never finished."""
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT output FROM task_steps WHERE task_id = ? AND step_name = ?",
                (task_id, step_name),
            ).fetchone()
            if not row:
                return None
            return json.loads(row["output"]) if row["output"] else {}

    def save_step(self, task_id: str, step_name: str, output: dict) -> None:
        """Record a finished step. The first recorded output wins."""
        with self._get_conn() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO task_steps (task_id, step_name, output) VALUES (?, ?, ?)",
                (task_id, step_name, json.dumps(output, ensure_ascii=False)),
            )

    def record_chunk_step(self, task_id: str, step_name: str, output: dict) -> int:
        """Record a finished chunk and count it in one transaction.

        A chunk recorded before keeps its first output and is not counted
        again. Returns the task's completed_chunks afterwards.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO task_steps (task_id, step_name, output) VALUES (?, ?, ?)",
                (task_id, step_name, json.dumps(output, ensure_ascii=False)),
            )
            if cursor.rowcount > 0:
                return self._bump_completed_chunks(conn, task_id)
            return self._completed_chunks(conn, task_id)

    def list_steps(self, task_id: str) -> list[str]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT step_name FROM task_steps WHERE task_id = ? ORDER BY completed_at, rowid",
                (task_id,),
            ).fetchall()
            return [r["step_name"] for r in rows]
