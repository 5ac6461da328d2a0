from marshmallow import Schema, fields

from crewpay.schemas.commission_entry_schema import CommissionEntrySchema
from crewpay.schemas.fields import Money, Percent, UtcDateTime


class PeriodSchema(Schema):
    start_date = UtcDateTime(data_key='startDate')
    end_date = UtcDateTime(data_key='endDate')
    payout_date = UtcDateTime(data_key='payoutDate')


class CrewCommissionSchema(Schema):
    crew_id = fields.String(data_key='crewId')
    crew_name = fields.String(data_key='crewName')
    total_revenue = Money(data_key='totalRevenue')
    total_commission = Money(data_key='totalCommission')
    total_bookings = fields.Integer(data_key='totalBookings')


class ServiceBreakdownSchema(Schema):
    service_type = fields.String(data_key='serviceType')
    booking_count = fields.Integer(data_key='bookingCount')
    total_revenue = Money(data_key='totalRevenue')
    total_commission = Money(data_key='totalCommission')


class CommissionSummarySchema(Schema):
    period = fields.Nested(PeriodSchema)
    total_bookings = fields.Integer(data_key='totalBookings')
    total_revenue = Money(data_key='totalRevenue')
    total_commission = Money(data_key='totalCommission')
    crew_count = fields.Integer(data_key='crewCount')
    crew = fields.List(fields.Nested(CrewCommissionSchema))
    breakdown = fields.List(fields.Nested(ServiceBreakdownSchema))
    degraded = fields.Boolean()
    unavailable_sources = fields.List(fields.String(), data_key='unavailableSources')


class PayrollLineSchema(Schema):
    booking_id = fields.String(data_key='bookingId')
    service_type = fields.String(data_key='serviceType')
    category = fields.String()
    revenue = Money()
    rate_percent = Percent(data_key='ratePercent')
    commission = Money()
    completed_at = UtcDateTime(data_key='completedAt')


class CrewPayrollSchema(Schema):
    crew_id = fields.String(data_key='crewId')
    crew_name = fields.String(data_key='crewName')
    period = fields.Nested(PeriodSchema)
    total_revenue = Money(data_key='totalRevenue')
    booking_commission = Money(data_key='bookingCommission')
    manual_commission = Money(data_key='manualCommission')
    total_commission = Money(data_key='totalCommission')
    total_bookings = fields.Integer(data_key='totalBookings')
    bookings = fields.List(fields.Nested(PayrollLineSchema))
    manual_entries = fields.List(fields.Nested(CommissionEntrySchema), data_key='manualEntries')
    degraded = fields.Boolean()
    unavailable_sources = fields.List(fields.String(), data_key='unavailableSources')


class PayrollWindowSchema(Schema):
    start = UtcDateTime()
    end = UtcDateTime()
    payout_date = UtcDateTime(data_key='payoutDate')
