from marshmallow import Schema, fields, validate
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field

from crewpay.models.commission_entry import CommissionEntry
from crewpay.schemas.fields import Money, UtcDateTime


class CommissionEntrySchema(SQLAlchemyAutoSchema):
    class Meta:
        model = CommissionEntry
        include_fk = True
    id = auto_field(dump_only=True)
    crew_user_id = auto_field(data_key='crewUserId')
    entry_date = UtcDateTime(data_key='entryDate')
    amount = Money()
    notes = auto_field()
    recorded_by = auto_field(data_key='recordedBy')
    status = auto_field()
    payout_id = auto_field(data_key='payoutId')
    booking_id = auto_field(data_key='bookingId')
    created_at = UtcDateTime(data_key='createdAt', dump_only=True)
    updated_at = UtcDateTime(data_key='updatedAt', dump_only=True)


class CommissionEntryCreateSchema(Schema):
    crew_user_id = fields.String(required=True, data_key='crewUserId', validate=validate.Length(min=1, max=64))
    entry_date = UtcDateTime(required=True, data_key='entryDate')
    amount = fields.Decimal(required=True)
    notes = fields.String(allow_none=True, load_default=None)
    recorded_by = fields.String(required=True, data_key='recordedBy', validate=validate.Length(min=1, max=64))
    # Unknown values fall back to pending in the service
    status = fields.String(allow_none=True, load_default=None)


class StatusUpdateSchema(Schema):
    status = fields.String(required=True)


class MaterializeSchema(Schema):
    crew_user_id = fields.String(required=True, data_key='crewUserId', validate=validate.Length(min=1, max=64))
    start = UtcDateTime(load_default=None)
    end = UtcDateTime(load_default=None)
    recorded_by = fields.String(required=True, data_key='recordedBy', validate=validate.Length(min=1, max=64))
    status = fields.String(allow_none=True, load_default=None)
