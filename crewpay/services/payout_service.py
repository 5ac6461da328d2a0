"""
Payout batches.

A payout groups commission entries for one crew member over one period.
Creating a payout and claiming its entries is one transaction: either the
payout row exists and every requested entry points at it, or nothing
changed. An entry that already belongs to a payout cannot be claimed again.
"""
import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from crewpay.extensions import db
from crewpay.models.commission_entry import CommissionEntry, STATUS_RELEASED, STATUS_DISPUTED
from crewpay.models.payout import Payout
from crewpay.services.commission_entry_service import parse_amount
from crewpay.services.errors import (
    ServiceError, ValidationError, NotFoundError, ConcurrentModificationError, translate_db_error,
)
from crewpay.services.status_policy import initial_status, require_status, check_transition
from crewpay.utils.timezone_utils import to_utc_naive, utcnow_naive

logger = logging.getLogger(__name__)


def _unique_ids(entry_ids):
    seen = []
    for raw in entry_ids or []:
        try:
            entry_id = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid commission entry id '{raw}'.", {'entryIds': ['Not a valid integer.']})
        if entry_id not in seen:
            seen.append(entry_id)
    return seen


class PayoutService:
    @staticmethod
    def get_by_id(payout_id):
        try:
            return db.session.get(Payout, payout_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching payout: {e}", exc_info=True)
            raise translate_db_error(e, "fetch payout")

    @staticmethod
    def list_payouts(crew_user_id=None, status=None):
        query = Payout.query
        if crew_user_id:
            query = query.filter(Payout.crew_user_id == str(crew_user_id))
        if status:
            query = query.filter(Payout.status == require_status(status))
        try:
            return query.order_by(Payout.period_start.desc(), Payout.id.desc()).all()
        except SQLAlchemyError as e:
            logger.error(f"Error fetching payouts: {e}", exc_info=True)
            raise translate_db_error(e, "fetch payouts")

    @staticmethod
    def create_payout(crew_user_id, period_start, period_end, total_amount, created_by, status=None, entry_ids=None):
        """
        Create a payout and attach ``entry_ids`` to it in one transaction.

        ``total_amount`` is stored as given; keeping it equal to the attached
        entries' sum is the caller's job (a mismatch is logged, see ``audit``).
        Attached entries take the payout's status.

        Raises:
            ValidationError: missing/malformed fields, an entry owned by another crew member,
                or a duplicate period when enforced
            NotFoundError: an entry id does not exist (nothing is written)
            ConcurrentModificationError: an entry already belongs to a payout (nothing is written)
        """
        if not crew_user_id or not str(crew_user_id).strip():
            raise ValidationError("crewUserId is required.", {'crewUserId': ['Missing data for required field.']})
        if not created_by or not str(created_by).strip():
            raise ValidationError("createdBy is required.", {'createdBy': ['Missing data for required field.']})
        if period_start is None or period_end is None:
            raise ValidationError("periodStart and periodEnd are required.")
        crew_user_id = str(crew_user_id).strip()
        start, end = to_utc_naive(period_start), to_utc_naive(period_end)
        if end < start:
            raise ValidationError("periodEnd must not be before periodStart.", {'periodEnd': ['Must not be before periodStart.']})
        total = parse_amount(total_amount)
        payout_status = initial_status(status)
        ids = _unique_ids(entry_ids)

        try:
            PayoutService._check_period_overlap(crew_user_id, start, end)

            entries = PayoutService._lock_entries(ids)
            PayoutService._check_claimable(ids, entries, crew_user_id)

            payout = Payout(
                crew_user_id=crew_user_id,
                period_start=start,
                period_end=end,
                total_amount=total,
                status=payout_status,
                created_by=str(created_by).strip(),
                released_at=utcnow_naive() if payout_status == STATUS_RELEASED else None,
            )
            db.session.add(payout)
            db.session.flush()

            PayoutService._claim_entries(payout, ids)
            db.session.commit()
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error creating payout for crew {crew_user_id}: {e}", exc_info=True)
            raise translate_db_error(e, "create payout")

        entries_total = sum((Decimal(str(e.amount)) for e in entries), Decimal('0.00'))
        if ids and entries_total != total:
            logger.warning(f"Payout {payout.id} total {total} differs from attached entries total {entries_total}")
        logger.info(f"Payout {payout.id} created for crew {crew_user_id} ({start} - {end}): "
                    f"{total} with {len(ids)} entries, status {payout_status}, by {created_by}")
        return payout

    @staticmethod
    def update_payout_status(payout_id, new_status, cascade=None):
        """
        Change a payout's status. ``released_at`` is stamped on release and
        cleared otherwise. When cascading (PAYOUT_STATUS_CASCADE by default)
        the attached entries take the new status too.
        """
        status = require_status(new_status)
        if cascade is None:
            cascade = current_app.config.get('PAYOUT_STATUS_CASCADE', True)

        try:
            payout = db.session.get(Payout, payout_id)
            if not payout:
                raise NotFoundError(f"Payout {payout_id} not found.")
            previous = payout.status
            if previous != status:
                check_transition(previous, status, 'payout')
                payout.status = status
                payout.released_at = utcnow_naive() if status == STATUS_RELEASED else None

            cascaded = 0
            if cascade:
                for entry in payout.entries:
                    if entry.status != status:
                        check_transition(entry.status, status, 'commission entry')
                        entry.status = status
                        cascaded += 1
            db.session.commit()
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error updating payout status: {e}", exc_info=True)
            raise translate_db_error(e, "update payout status")

        if previous != status or cascaded:
            logger.info(f"Payout {payout_id} status {previous} -> {status}, {cascaded} entries updated")
        return payout

    @staticmethod
    def audit(payout_id):
        """Reconstruct a payout's total from its attached entries."""
        payout = PayoutService.get_by_id(payout_id)
        if not payout:
            raise NotFoundError(f"Payout {payout_id} not found.")
        recorded = Decimal(str(payout.total_amount))
        entries_total = sum((Decimal(str(e.amount)) for e in payout.entries), Decimal('0.00'))
        return {
            'payout_id': payout.id,
            'recorded_total': recorded,
            'entries_total': entries_total,
            'drift': recorded - entries_total,
            'entry_count': len(payout.entries),
            'balanced': recorded == entries_total,
        }

    @staticmethod
    def _check_period_overlap(crew_user_id, start, end):
        existing = Payout.query.filter(
            Payout.crew_user_id == crew_user_id,
            Payout.period_start == start,
            Payout.period_end == end,
            Payout.status != STATUS_DISPUTED,
        ).first()
        if not existing:
            return
        if current_app.config.get('ENFORCE_UNIQUE_PAYOUT_PERIOD', False):
            raise ValidationError(f"Crew {crew_user_id} already has payout {existing.id} for this period.")
        logger.warning(f"Crew {crew_user_id} already has payout {existing.id} for {start} - {end}; creating another")

    @staticmethod
    def _lock_entries(ids):
        if not ids:
            return []
        # FOR UPDATE is a no-op on SQLite, row locks on PostgreSQL
        return (
            CommissionEntry.query
            .filter(CommissionEntry.id.in_(ids))
            .with_for_update()
            .all()
        )

    @staticmethod
    def _check_claimable(ids, entries, crew_user_id):
        found = {e.id for e in entries}
        missing = [i for i in ids if i not in found]
        if missing:
            raise NotFoundError(f"Commission entries {missing} do not exist.")
        foreign = sorted(e.id for e in entries if e.crew_user_id != crew_user_id)
        if foreign:
            raise ValidationError(
                f"Commission entries {foreign} do not belong to crew {crew_user_id}.",
                {'entryIds': [f"Entries {foreign} belong to another crew member."]})
        claimed = sorted(e.id for e in entries if e.payout_id is not None)
        if claimed:
            raise ConcurrentModificationError(f"Commission entries {claimed} already belong to a payout.")

    @staticmethod
    def _claim_entries(payout, ids):
        """Compare-and-set: only entries still unattached are claimed."""
        if not ids:
            return
        result = db.session.execute(
            update(CommissionEntry)
            .where(CommissionEntry.id.in_(ids), CommissionEntry.payout_id.is_(None))
            .values(payout_id=payout.id, status=payout.status, updated_at=utcnow_naive())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(ids):
            raise ConcurrentModificationError(
                f"Only {result.rowcount} of {len(ids)} commission entries could be claimed; "
                "another payout claimed them first.")
