"""
Commission reporting: organization-wide summary and per-crew payroll detail.

Reporting never fails the caller because a data source is down. Any failed
or malformed read produces a zeroed report for the requested period with
``degraded`` set; only when every source is down does the caller see
UpstreamUnavailableError.
"""
import logging

from crewpay.services.commission_aggregator import AggregateResult, CommissionAggregator, ZERO
from crewpay.services.crew_directory import CrewDirectory
from crewpay.services.errors import ServiceError, UpstreamUnavailableError
from crewpay.utils.payroll_window import resolve_period

logger = logging.getLogger(__name__)


def _period(start, end, window):
    period = {'start_date': start, 'end_date': end}
    if window is not None:
        period['payout_date'] = window.as_utc_naive().payout_date
    return period


def _crew_row(bucket):
    return {
        'crew_id': bucket.crew_id,
        'crew_name': bucket.crew_name,
        'total_revenue': bucket.total_revenue,
        'total_commission': bucket.total_commission,
        'total_bookings': bucket.total_bookings,
    }


def _service_row(bucket):
    return {
        'service_type': bucket.service_type,
        'booking_count': bucket.booking_count,
        'total_revenue': bucket.total_revenue,
        'total_commission': bucket.total_commission,
    }


class CommissionSummaryService:
    @staticmethod
    def zero_summary(period, unavailable_sources=None):
        return {
            'period': period,
            'total_bookings': 0,
            'total_revenue': ZERO,
            'total_commission': ZERO,
            'crew_count': 0,
            'crew': [],
            'breakdown': [],
            'degraded': True,
            'unavailable_sources': list(unavailable_sources or []),
        }

    @staticmethod
    def summary(period_start=None, period_end=None):
        """
        Organization-wide commission summary.

        Missing bounds default to the current payroll window. The crew list is
        ordered by total commission, highest first.
        """
        start, end, window = resolve_period(period_start, period_end)
        period = _period(start, end, window)

        try:
            result = CommissionAggregator.aggregate(start, end)
        except UpstreamUnavailableError:
            raise
        except ServiceError as e:
            logger.warning(f"Commission summary for {start} - {end} unavailable: {e.message}")
            return CommissionSummaryService.zero_summary(period)
        except Exception as e:
            logger.error(f"Unexpected error building commission summary: {e}", exc_info=True)
            return CommissionSummaryService.zero_summary(period)

        if result.degraded:
            return CommissionSummaryService.zero_summary(period, result.unavailable_sources)

        try:
            return CommissionSummaryService._build_summary(result, period)
        except Exception as e:
            logger.error(f"Malformed commission data for {start} - {end}: {e}", exc_info=True)
            return CommissionSummaryService.zero_summary(period)

    @staticmethod
    def _build_summary(result: AggregateResult, period):
        crew = [_crew_row(b) for b in result.per_crew]
        return {
            'period': period,
            'total_bookings': result.total_bookings,
            'total_revenue': result.total_revenue,
            'total_commission': result.total_commission,
            'crew_count': len(crew),
            'crew': crew,
            'breakdown': [_service_row(s) for s in result.per_service],
            'degraded': False,
            'unavailable_sources': [],
        }

    @staticmethod
    def crew_payroll(crew_user_id, period_start=None, period_end=None):
        """
        Payroll detail for one crew member: every booking line with its
        resolved rate, the manual entries counted, and the totals.
        """
        start, end, window = resolve_period(period_start, period_end)
        crew_id = str(crew_user_id)
        detail = CommissionSummaryService._zero_payroll(crew_id, _period(start, end, window))

        try:
            result = CommissionAggregator.aggregate(start, end, crew_user_id=crew_id)
        except UpstreamUnavailableError:
            raise
        except Exception as e:
            logger.error(f"Error building payroll for crew {crew_id}: {e}", exc_info=True)
            return detail

        if result.degraded:
            detail['unavailable_sources'] = list(result.unavailable_sources)
            return detail

        bucket = next((b for b in result.per_crew if b.crew_id == crew_id), None)
        if bucket is None:
            detail['crew_name'] = CommissionSummaryService._crew_name(crew_id)
        else:
            detail.update({
                'crew_name': bucket.crew_name,
                'total_revenue': bucket.total_revenue,
                'booking_commission': bucket.booking_commission,
                'manual_commission': bucket.manual_commission,
                'total_commission': bucket.total_commission,
                'total_bookings': bucket.total_bookings,
            })
        detail['bookings'] = [
            {
                'booking_id': line.booking_id,
                'service_type': line.service_type,
                'category': line.category,
                'revenue': line.revenue,
                'rate_percent': line.rate_percent,
                'commission': line.commission,
                'completed_at': line.completed_at,
            }
            for line in result.lines
        ]
        detail['manual_entries'] = list(result.manual_entries)
        detail['degraded'] = False
        return detail

    @staticmethod
    def _zero_payroll(crew_id, period):
        return {
            'crew_id': crew_id,
            'crew_name': crew_id,
            'period': period,
            'total_revenue': ZERO,
            'booking_commission': ZERO,
            'manual_commission': ZERO,
            'total_commission': ZERO,
            'total_bookings': 0,
            'bookings': [],
            'manual_entries': [],
            'degraded': True,
            'unavailable_sources': [],
        }

    @staticmethod
    def _crew_name(crew_id):
        try:
            profile = CrewDirectory.get_crew_profile(crew_id)
        except ServiceError:
            return crew_id
        return profile.display_name if profile else crew_id
