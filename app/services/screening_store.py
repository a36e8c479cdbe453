"""Persisted screening state for applicants.

All writes to the screening fields of an Applicant go through this module.
Statuses only move via conditional UPDATE statements so that concurrent
requests and webhook deliveries observe a single winner, and the derived
``screening_status`` is recomputed in SQL inside the same transaction as
every sub-status write.
"""
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional
from sqlalchemy import and_, case, literal, or_
from sqlalchemy.orm import joinedload
from app.database import get_db
from app.models import Applicant
from app.models.applicant import ScreeningStatus
from app.utils.logger import get_logger

logger = get_logger(__name__)

TERMINAL_STATUSES = (ScreeningStatus.PASSED, ScreeningStatus.FAILED)
CORRELATION_FIELDS = ('idenfy_verification_id', 'checkr_report_id')


class Pipeline(enum.Enum):
    """The two independent verification tracks, keyed by their status column"""
    IDENTITY = 'idenfy_status'
    BACKGROUND_CHECK = 'checkr_status'

    @property
    def column(self):
        return getattr(Applicant, self.value)


@dataclass(frozen=True)
class ClaimResult:
    claimed: bool
    previous_status: Optional[ScreeningStatus] = None


def derive_screening_status(identity: ScreeningStatus, background: ScreeningStatus) -> ScreeningStatus:
    """Aggregate the two sub-pipeline statuses into the overall screening status"""
    statuses = (identity, background)
    if identity == ScreeningStatus.PASSED and background == ScreeningStatus.PASSED:
        return ScreeningStatus.PASSED
    if ScreeningStatus.FAILED in statuses and ScreeningStatus.IN_PROGRESS not in statuses:
        return ScreeningStatus.FAILED
    if identity == ScreeningStatus.PENDING and background == ScreeningStatus.PENDING:
        return ScreeningStatus.PENDING
    return ScreeningStatus.IN_PROGRESS


def _aggregate_expression():
    """SQL rendition of derive_screening_status over the row's current values"""
    status_type = Applicant.__table__.c.screening_status.type
    identity = Applicant.idenfy_status
    background = Applicant.checkr_status

    def status(value):
        return literal(value, status_type)

    return case(
        (and_(identity == ScreeningStatus.PASSED, background == ScreeningStatus.PASSED),
         status(ScreeningStatus.PASSED)),
        (and_(or_(identity == ScreeningStatus.FAILED, background == ScreeningStatus.FAILED),
              identity != ScreeningStatus.IN_PROGRESS,
              background != ScreeningStatus.IN_PROGRESS),
         status(ScreeningStatus.FAILED)),
        (and_(identity == ScreeningStatus.PENDING, background == ScreeningStatus.PENDING),
         status(ScreeningStatus.PENDING)),
        else_=status(ScreeningStatus.IN_PROGRESS)
    )


class ScreeningStore:
    """Atomic read/write primitives over the applicant screening record"""

    def _update(self, db, applicant_id: str, criteria, values: dict) -> int:
        return db.query(Applicant).filter(
            Applicant.id == applicant_id, *criteria
        ).update(values, synchronize_session=False)

    def _recompute_aggregate(self, db, applicant_id: str):
        self._update(db, applicant_id, (), {Applicant.screening_status: _aggregate_expression()})

    # Status transitions

    def claim(self, applicant_id: str, pipeline: Pipeline, from_statuses: Iterable[ScreeningStatus],
              to_status: ScreeningStatus, requires: Dict[Pipeline, ScreeningStatus] = None) -> ClaimResult:
        """Atomically move a pipeline to ``to_status`` if it is in one of ``from_statuses``.

        Source statuses are tried in the order given, each as its own
        conditional update, so the result names the exact pre-claim value
        that a rollback must restore. ``requires`` adds conditions on other
        pipelines that must hold in the same UPDATE.
        """
        column = pipeline.column
        guards = tuple(other.column == status for other, status in (requires or {}).items())
        for from_status in from_statuses:
            with get_db() as db:
                count = self._update(db, applicant_id, (column == from_status,) + guards, {column: to_status})
                if count:
                    self._recompute_aggregate(db, applicant_id)

            if count:
                logger.info(
                    f"Claimed {pipeline.name} {from_status.value} -> {to_status.value} "
                    f"for applicant {applicant_id}"
                )
                return ClaimResult(claimed=True, previous_status=from_status)

        return ClaimResult(claimed=False)

    def terminal_update(self, applicant_id: str, pipeline: Pipeline, to_status: ScreeningStatus,
                        **correlation_fields) -> bool:
        """Write a provider-reported outcome regardless of the current status.

        The write is skipped when the pipeline already holds ``to_status``,
        so redelivered outcomes are no-ops. Returns True only for the call
        that applied the transition.
        """
        if to_status not in TERMINAL_STATUSES:
            raise ValueError(f"Terminal update requires PASSED or FAILED, got {to_status}")

        column = pipeline.column
        values = {column: to_status}
        values.update(self._correlation_values(correlation_fields))

        with get_db() as db:
            count = self._update(db, applicant_id, (column != to_status,), values)
            if count:
                self._recompute_aggregate(db, applicant_id)

        if count:
            logger.info(f"Terminal update {pipeline.name} -> {to_status.value} for applicant {applicant_id}")
        return bool(count)

    # Correlation identifiers

    def _correlation_values(self, fields: dict) -> dict:
        unknown = set(fields) - set(CORRELATION_FIELDS)
        if unknown:
            raise ValueError(f"Not a correlation field: {', '.join(sorted(unknown))}")
        return {getattr(Applicant, name): value for name, value in fields.items()}

    def record_correlation(self, applicant_id: str, **fields) -> bool:
        """Store provider identifiers; returns False when nothing changed"""
        values = self._correlation_values(fields)
        if not values:
            return False

        changed = or_(*[or_(column.is_(None), column != value) for column, value in values.items()])
        with get_db() as db:
            count = self._update(db, applicant_id, (changed,), values)
        return bool(count)

    def assign_candidate_id(self, applicant_id: str, candidate_id: str) -> str:
        """Store the Checkr candidate id unless one is already assigned.

        Returns the candidate id that is stored afterwards; an existing id
        always wins.
        """
        with get_db() as db:
            count = self._update(
                db, applicant_id,
                (Applicant.checkr_candidate_id.is_(None),),
                {Applicant.checkr_candidate_id: candidate_id}
            )

        if count:
            return candidate_id

        stored = self.get_candidate_id(applicant_id)
        if stored != candidate_id:
            logger.warning(
                f"Applicant {applicant_id} already has Checkr candidate {stored}; "
                f"discarding {candidate_id}"
            )
        return stored

    def get_candidate_id(self, applicant_id: str) -> Optional[str]:
        with get_db() as db:
            row = db.query(Applicant.checkr_candidate_id).filter(Applicant.id == applicant_id).first()
            return row[0] if row else None

    # Continuous monitoring slot

    @staticmethod
    def monitoring_placeholder(applicant_id: str) -> str:
        return f"enrolling-{applicant_id}"

    def claim_monitoring_slot(self, applicant_id: str) -> bool:
        """Reserve enrollment with a unique placeholder so only one caller enrolls"""
        with get_db() as db:
            count = self._update(
                db, applicant_id,
                (Applicant.continuous_monitoring_id.is_(None),
                 Applicant.checkr_candidate_id.isnot(None),
                 Applicant.deleted_at.is_(None)),
                {Applicant.continuous_monitoring_id: self.monitoring_placeholder(applicant_id)}
            )
        return bool(count)

    def complete_monitoring_slot(self, applicant_id: str, monitor_id: str) -> bool:
        with get_db() as db:
            count = self._update(
                db, applicant_id,
                (Applicant.deleted_at.is_(None),
                 Applicant.continuous_monitoring_id == self.monitoring_placeholder(applicant_id)),
                {Applicant.continuous_monitoring_id: monitor_id}
            )
        return bool(count)

    def release_monitoring_slot(self, applicant_id: str) -> bool:
        with get_db() as db:
            count = self._update(
                db, applicant_id,
                (Applicant.continuous_monitoring_id == self.monitoring_placeholder(applicant_id),),
                {Applicant.continuous_monitoring_id: None}
            )
        return bool(count)

    # Non-screening applicant fields written by the orchestrator

    def transition_application(self, applicant_id: str, from_statuses, to_status) -> bool:
        with get_db() as db:
            count = self._update(
                db, applicant_id,
                (Applicant.application_status.in_(list(from_statuses)),),
                {Applicant.application_status: to_status}
            )
        return bool(count)

    def append_note(self, applicant_id: str, note: str):
        """Append a timestamped line to the applicant's screening notes"""
        entry = f"[{datetime.utcnow().isoformat()}] {note}"
        notes = Applicant.background_check_notes
        with get_db() as db:
            self._update(db, applicant_id, (), {
                notes: case((notes.is_(None), entry), else_=notes + '\n' + entry)
            })

    # Reads

    def get_applicant(self, applicant_id: str, include_deleted: bool = False) -> Optional[Applicant]:
        with get_db() as db:
            query = db.query(Applicant).options(joinedload(Applicant.user)).filter(Applicant.id == applicant_id)
            if not include_deleted:
                query = query.filter(Applicant.deleted_at.is_(None))
            return query.first()

    def find_by_candidate_id(self, candidate_id: str) -> Optional[Applicant]:
        with get_db() as db:
            return db.query(Applicant).options(joinedload(Applicant.user)).filter(
                Applicant.checkr_candidate_id == candidate_id
            ).first()

    def find_by_report_id(self, report_id: str) -> Optional[Applicant]:
        with get_db() as db:
            return db.query(Applicant).options(joinedload(Applicant.user)).filter(
                Applicant.checkr_report_id == report_id
            ).first()
