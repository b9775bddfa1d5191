"""Progress tracking for running imports.

The import loop is the only writer of a progress record; everything else
reads snapshots. Counters only move forward, so consecutive polls never see
``progress`` or ``percentage`` go down.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, UTC
from typing import Callable, Optional

from ledgerlink.database.base import Database
from ledgerlink.domain.entities import ImportSession, ProgressRecord
from ledgerlink.domain.errors import NotFoundError, ValidationError

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ProgressSnapshot:
    """What a polling client sees for one client's import."""

    status: str
    is_active: bool
    total: int
    progress: int
    percentage: int
    current_entry: Optional[str] = None
    start_time: Optional[datetime] = None
    estimated_time_remaining: Optional[str] = None
    session_id: Optional[int] = None
    imported: int = 0
    skipped: int = 0


IDLE = ProgressSnapshot(status="idle", is_active=False, total=0, progress=0, percentage=0)


def format_duration(seconds: float) -> str:
    """Render seconds as "Ns", "Nm Ns" or "Nh Nm"."""
    seconds = max(0, int(round(seconds)))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def estimate_remaining(record: ProgressRecord, now: datetime) -> Optional[str]:
    """Average time per processed row times the rows left.

    Returns None before the first row or once nothing is left.
    """
    processed = record.processed
    remaining = record.total - processed
    if processed <= 0 or remaining <= 0:
        return None
    elapsed = (now - record.start_time).total_seconds()
    return format_duration(elapsed / processed * remaining)


class ProgressTracker:
    """Maintain and serve the progress record of an import session."""

    def __init__(self, db: Database, clock: Optional[Clock] = None):
        """Initialize progress tracker.

        Args:
            db: Database instance
            clock: Returns the current UTC time (injectable for tests)
        """
        self.db = db
        self.clock = clock or utcnow

    def start(self, session: ImportSession, total: int) -> ProgressRecord:
        """Create the progress record for a session about to import ``total`` rows."""
        if total < 0:
            raise ValidationError("Progress total cannot be negative")
        self.db.create_progress(session.id, session.client_id, total)
        return self.db.get_progress(session.id)

    def get(self, session_id: int) -> Optional[ProgressRecord]:
        return self.db.get_progress(session_id)

    def advance(
        self,
        session_id: int,
        imported: int = 0,
        skipped: int = 0,
        current_entry: Optional[str] = None,
    ) -> ProgressRecord:
        """Count rows just dispatched.

        Args:
            session_id: Session whose record to update
            imported: Rows committed since the last call
            skipped: Rows skipped since the last call
            current_entry: Label of the row just processed

        Raises:
            NotFoundError: If the session has no progress record
            ValidationError: If a counter would go backwards or past ``total``
        """
        record = self.db.get_progress(session_id)
        if record is None:
            raise NotFoundError(f"No progress record for import session {session_id}")
        if imported < 0 or skipped < 0:
            raise ValidationError("Progress counters can only increase")

        new_imported = record.imported + imported
        new_skipped = record.skipped + skipped
        if new_imported + new_skipped > record.total:
            raise ValidationError(
                f"Progress for session {session_id} would exceed its total of {record.total} rows"
            )

        self.db.update_progress(session_id, new_imported, new_skipped, current_entry)
        return self.db.get_progress(session_id)

    def finish(self, session_id: int) -> None:
        """Mark the record inactive; it stays readable until cleared."""
        self.db.set_progress_active(session_id, False)

    def deactivate(self, session_id: int) -> None:
        """Mark the record inactive after cancellation or failure."""
        self.db.set_progress_active(session_id, False)

    def clear(self, client_id: int) -> None:
        """Drop a client's progress records before a new import."""
        self.db.delete_progress(client_id)

    def snapshot(self, client_id: int) -> ProgressSnapshot:
        """Progress of the client's most recent session.

        Answers even when the client never imported anything, with status
        ``"idle"``.
        """
        sessions = self.db.list_import_sessions(client_id)
        if not sessions:
            return IDLE
        session = sessions[0]
        record = self.db.get_progress(session.id)
        if record is None:
            return ProgressSnapshot(
                status=session.status.value,
                is_active=False,
                total=0,
                progress=0,
                percentage=0,
                session_id=session.id,
            )

        is_active = record.is_active and session.status.is_active
        return ProgressSnapshot(
            status=session.status.value,
            is_active=is_active,
            total=record.total,
            progress=record.processed,
            percentage=record.percent,
            current_entry=record.current_entry,
            start_time=record.start_time,
            estimated_time_remaining=estimate_remaining(record, self.clock()) if is_active else None,
            session_id=session.id,
            imported=record.imported,
            skipped=record.skipped,
        )

    def is_stalled(self, session_id: int, stalled_for: timedelta) -> bool:
        """Whether an active record has not moved for at least ``stalled_for``."""
        record = self.db.get_progress(session_id)
        if record is None or not record.is_active:
            return False
        return self.clock() - record.updated_at >= stalled_for
