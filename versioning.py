"""
Optimistic concurrency for versioned rows

Every update of a versioned table goes through VersionedUpdateProtocol:

    START -> VERSION_READ -> {CONFLICT, MISSING_ROW, PROCEED} -> UPDATED | FAILED

The stored version is read first so "missing" and "stale" are reported
separately. The UPDATE itself is still guarded by `AND version = $n`; if a
concurrent writer gets in between the read and the write, the guarded UPDATE
matches nothing and the row is re-checked to tell CONFLICT from MISSING_ROW.
Of two concurrent updates carrying the same version, exactly one succeeds.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from database import DatabaseConnection
from errors import NotFoundError, VersionConflictError
from utils.error_messages import STORE_EXCEPTIONS, translate_store_error

logger = logging.getLogger(__name__)


class UpdateState(str, Enum):
    START = "start"
    VERSION_READ = "version_read"
    CONFLICT = "conflict"
    MISSING_ROW = "missing_row"
    PROCEED = "proceed"
    UPDATED = "updated"
    FAILED = "failed"


TERMINAL_STATES = {UpdateState.CONFLICT, UpdateState.MISSING_ROW, UpdateState.UPDATED, UpdateState.FAILED}

_TRANSITIONS: dict[UpdateState, set[UpdateState]] = {
    UpdateState.START: {UpdateState.VERSION_READ, UpdateState.CONFLICT, UpdateState.FAILED},
    UpdateState.VERSION_READ: {
        UpdateState.CONFLICT, UpdateState.MISSING_ROW, UpdateState.PROCEED, UpdateState.FAILED,
    },
    # CONFLICT / MISSING_ROW from PROCEED: a concurrent writer won the race
    UpdateState.PROCEED: {
        UpdateState.UPDATED, UpdateState.CONFLICT, UpdateState.MISSING_ROW, UpdateState.FAILED,
    },
}


@dataclass
class UpdateAttempt:
    """State of one versioned update. Never shared between calls."""
    table: str
    record_id: Any
    expected_version: Optional[int]
    state: UpdateState = UpdateState.START
    history: list[UpdateState] = field(default_factory=lambda: [UpdateState.START])
    stored_version: Optional[int] = None
    version: Optional[int] = None
    updated_at: Optional[datetime] = None

    def move(self, state: UpdateState):
        if state not in _TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"Illegal update transition {self.state.value} -> {state.value}")
        logger.debug(f"{self.table}#{self.record_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES


class VersionedUpdateProtocol:
    """
    Compare-and-swap update for one table.

    Holds no per-call state, so one instance can serve concurrent requests.
    `changes` maps trusted column names to new values; callers build it
    from their own column lists, never from request keys.
    """

    def __init__(self, db: DatabaseConnection, table: str, timeout: Optional[float] = None):
        self.db = db
        self.table = table
        self.timeout = timeout

    def _version_query(self) -> str:
        return f"SELECT version FROM {self.table} WHERE id = $1"

    def build_update(self, record_id: Any, expected_version: int, changes: Mapping[str, Any]) -> tuple[str, list]:
        """UPDATE guarded by id and version; returns (sql, params)."""
        params: list = []
        assignments = []
        for column, value in changes.items():
            params.append(value)
            assignments.append(f"{column} = ${len(params)}")
        assignments.append("version = version + 1")
        assignments.append("updated_at = NOW()")

        params.append(record_id)
        id_param = len(params)
        params.append(expected_version)
        version_param = len(params)

        sql = (
            f"UPDATE {self.table} SET {', '.join(assignments)} "
            f"WHERE id = ${id_param} AND version = ${version_param} "
            f"RETURNING updated_at, version"
        )
        return sql, params

    async def _read_version(self, attempt: UpdateAttempt) -> Optional[int]:
        try:
            return await self.db.fetchval(self._version_query(), attempt.record_id, timeout=self.timeout)
        except STORE_EXCEPTIONS as e:
            attempt.move(UpdateState.FAILED)
            raise translate_store_error(e, "update") from e

    def _conflict(self, attempt: UpdateAttempt) -> VersionConflictError:
        attempt.move(UpdateState.CONFLICT)
        logger.warning(
            f"Version conflict on {self.table}#{attempt.record_id}: "
            f"expected {attempt.expected_version}, stored {attempt.stored_version}"
        )
        return VersionConflictError()

    def _missing(self, attempt: UpdateAttempt) -> NotFoundError:
        attempt.move(UpdateState.MISSING_ROW)
        logger.warning(f"Update target {self.table}#{attempt.record_id} not found")
        return NotFoundError(f"Record {attempt.record_id} not found in {self.table}")

    async def apply(self, record_id: Any, expected_version: Optional[int], changes: Mapping[str, Any]) -> UpdateAttempt:
        """
        Run the protocol. Returns the finished attempt carrying the new
        version and updated_at.

        Raises:
            VersionConflictError: expected version missing, < 1, or stale
            NotFoundError: no row with `record_id`
            DuplicateError / InvalidDataError: constraint violated by `changes`
            StoreError: any other store failure, operation "update"
        """
        attempt = UpdateAttempt(self.table, record_id, expected_version)

        if expected_version is None or expected_version < 1:
            raise self._conflict(attempt)

        stored = await self._read_version(attempt)
        attempt.move(UpdateState.VERSION_READ)
        attempt.stored_version = stored

        if stored is None:
            raise self._missing(attempt)
        if stored != expected_version:
            raise self._conflict(attempt)

        attempt.move(UpdateState.PROCEED)
        sql, params = self.build_update(record_id, expected_version, changes)
        try:
            row = await self.db.fetchrow(sql, *params, timeout=self.timeout)
        except STORE_EXCEPTIONS as e:
            attempt.move(UpdateState.FAILED)
            raise translate_store_error(e, "update") from e

        if row is None:
            # Lost the race after the read; find out whether the row is gone or moved on
            try:
                attempt.stored_version = await self.db.fetchval(
                    self._version_query(), record_id, timeout=self.timeout
                )
            except STORE_EXCEPTIONS as e:
                attempt.move(UpdateState.FAILED)
                raise translate_store_error(e, "update") from e
            if attempt.stored_version is None:
                raise self._missing(attempt)
            raise self._conflict(attempt)

        attempt.updated_at = row["updated_at"]
        attempt.version = row["version"]
        attempt.move(UpdateState.UPDATED)
        logger.info(f"Updated {self.table}#{record_id} to version {attempt.version}")
        return attempt
