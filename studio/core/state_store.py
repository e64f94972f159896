"""
ProjectStore: the single writer for one session's Project.

The Project snapshot is hydrated from the client at the start of each
request; from then on every change goes through this store.

Key principles:
1. Project state is versioned - every applied mutation bumps the version
2. A ToolResult applies atomically - all of its mutations or none
3. Event sourcing - every applied mutation is captured as an event
4. Stage is derived after each applied result, never written by tools

Architecture:
    ProjectStore (per session, versioned)
        └── Project (aggregate root, mutated only via apply_result)
        └── EventLog (append-only mutation history)
        └── Snapshots (taken at transaction start, used for rollback)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from studio.core.mutations import apply_mutation, mutation_entity_id
from studio.core.stage_validator import derive_stage
from studio.models.project import Project
from studio.models.tools import MutationType, StateMutation, ToolResult

logger = logging.getLogger(__name__)


@dataclass
class StateEvent:
    """A single applied mutation."""
    id: str
    mutation_type: MutationType
    entity_id: Optional[str]
    payload: Any
    timestamp: datetime
    version: int
    source: Optional[str] = None
    transaction_id: Optional[str] = None


@dataclass
class Transaction:
    """A group of mutations that succeed or fail together."""
    id: str
    started_at: datetime
    snapshot: Project
    base_version: int
    events: list[StateEvent] = field(default_factory=list)
    committed: bool = False
    rolled_back: bool = False

    @property
    def is_active(self) -> bool:
        return not self.committed and not self.rolled_back


class ProjectStore:
    """
    Versioned, single-writer holder of a session's Project.

    Usage:
        store = ProjectStore(project)
        result = await execute(tool_name, args, store.project)
        store.apply_result(result, source=tool_name)   # atomic
        store.project.stage                            # re-derived
    """

    def __init__(
        self,
        project: Optional[Project] = None,
        conversation_id: Optional[str] = None,
    ):
        self._project = project if project is not None else Project()
        self.conversation_id = conversation_id or str(uuid.uuid4())
        self._version: int = 0
        self._events: list[StateEvent] = []
        self._active_transaction: Optional[Transaction] = None
        self._project.stage = derive_stage(self._project)

        logger.debug(
            f"🏗️ ProjectStore initialized: conv={self.conversation_id[:8]}, proj={self._project.id[:8]}"
        )

    @property
    def project(self) -> Project:
        return self._project

    @property
    def version(self) -> int:
        return self._version

    @property
    def events(self) -> list[StateEvent]:
        return list(self._events)

    # =========================================================================
    # Transaction Management
    # =========================================================================

    def begin_transaction(self) -> Transaction:
        """Begin a transaction; the current Project is snapshotted for rollback."""
        if self._active_transaction and self._active_transaction.is_active:
            raise RuntimeError("Transaction already active. Commit or rollback first.")

        tx = Transaction(
            id=str(uuid.uuid4()),
            started_at=datetime.now(timezone.utc),
            snapshot=self._project.model_copy(deep=True),
            base_version=self._version,
        )
        self._active_transaction = tx
        return tx

    def commit(self, transaction: Transaction) -> None:
        self._require_active(transaction)
        transaction.committed = True
        self._active_transaction = None
        self._project.stage = derive_stage(self._project)

    def rollback(self, transaction: Transaction) -> None:
        """Restore the snapshot and drop the transaction's events. Version is not rewound."""
        self._require_active(transaction)
        self._project = transaction.snapshot
        self._events = [e for e in self._events if e.transaction_id != transaction.id]
        transaction.rolled_back = True
        self._active_transaction = None
        logger.warning(
            f"⏪ Transaction rolled back: {transaction.id[:8]} ({len(transaction.events)} mutations reverted)"
        )

    def _require_active(self, transaction: Transaction) -> None:
        if self._active_transaction is None or transaction.id != self._active_transaction.id:
            raise ValueError("Transaction is not the active transaction")
        if not transaction.is_active:
            raise ValueError("Transaction is not active")

    # =========================================================================
    # Applying results
    # =========================================================================

    def apply(self, mutation: StateMutation, source: Optional[str] = None) -> StateEvent:
        """Apply one mutation outside any caller-visible grouping (wrapped in its own transaction)."""
        return self.apply_all([mutation], source=source)[0]

    def apply_result(self, result: ToolResult, source: Optional[str] = None) -> list[StateEvent]:
        """Apply every mutation of a successful ToolResult atomically.

        Failed results carry no mutations and are ignored. Raises
        ``MutationError`` after rolling back if any mutation is rejected; any
        other exception from an applier also rolls back before propagating.
        """
        if not result.success:
            return []
        return self.apply_all(result.mutations, source=source)

    def apply_all(self, mutations: list[StateMutation], source: Optional[str] = None) -> list[StateEvent]:
        if not mutations:
            return []

        tx = self.begin_transaction()
        try:
            for mutation in mutations:
                apply_mutation(self._project, mutation)
                tx.events.append(self._append_event(mutation, source, tx))
        except Exception:
            self.rollback(tx)
            raise
        self.commit(tx)

        logger.debug(f"✅ Applied {len(tx.events)} mutation(s) from {source or 'client'} → v{self._version}")
        return tx.events

    def _append_event(
        self,
        mutation: StateMutation,
        source: Optional[str],
        transaction: Optional[Transaction],
    ) -> StateEvent:
        self._version += 1
        event = StateEvent(
            id=str(uuid.uuid4()),
            mutation_type=mutation.type,
            entity_id=mutation_entity_id(mutation),
            payload=mutation.payload,
            timestamp=datetime.now(timezone.utc),
            version=self._version,
            source=source,
            transaction_id=transaction.id if transaction else None,
        )
        self._events.append(event)
        return event

