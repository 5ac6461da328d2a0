from flask import Blueprint, request, jsonify
from marshmallow import ValidationError as SchemaValidationError

from crewpay.schemas.commission_entry_schema import (
    CommissionEntrySchema, CommissionEntryCreateSchema, MaterializeSchema, StatusUpdateSchema,
)
from crewpay.services.commission_entry_service import CommissionEntryService
from crewpay.services.errors import ServiceError
from crewpay.utils.payroll_window import resolve_period
from crewpay.utils.responses import (
    caller_identity, json_body, period_arg, schema_error_response, service_error_response, unexpected_error_response,
)
import logging

commission_entry_bp = Blueprint('commission_entry', __name__)
schema = CommissionEntrySchema()
schema_many = CommissionEntrySchema(many=True)
create_schema = CommissionEntryCreateSchema()
status_schema = StatusUpdateSchema()
materialize_schema = MaterializeSchema()


@commission_entry_bp.route('/commission-entries', methods=['GET'])
def list_commission_entries():
    try:
        entries = CommissionEntryService.list_entries(
            crew_user_id=request.args.get('crewUserId'),
            status=request.args.get('status'),
            start=period_arg('start'),
            end=period_arg('end', end_of_day=True),
        )
        return jsonify(schema_many.dump(entries)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('list_commission_entries', e)


@commission_entry_bp.route('/commission-entries', methods=['POST'])
def create_commission_entry():
    try:
        data = json_body()
        data.setdefault('recordedBy', caller_identity(data, 'recordedBy'))
        try:
            payload = create_schema.load(data)
        except SchemaValidationError as err:
            return schema_error_response(err.messages)
        entry = CommissionEntryService.create(
            crew_user_id=payload['crew_user_id'],
            entry_date=payload['entry_date'],
            amount=payload['amount'],
            notes=payload['notes'],
            recorded_by=payload['recorded_by'],
            status=payload['status'],
        )
        return jsonify(schema.dump(entry)), 201
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('create_commission_entry', e)


@commission_entry_bp.route('/commission-entries/<int:entry_id>/status', methods=['PATCH'])
def update_commission_entry_status(entry_id):
    try:
        data = json_body()
        actor = caller_identity(data, 'updatedBy')
        try:
            payload = status_schema.load({'status': data.get('status')})
        except SchemaValidationError as err:
            return schema_error_response(err.messages)
        entry = CommissionEntryService.update_status(entry_id, payload['status'])
        logging.info(f"Commission entry {entry_id} status set to {entry.status} by {actor}")
        return jsonify(schema.dump(entry)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('update_commission_entry_status', e)


@commission_entry_bp.route('/commission-entries/materialize', methods=['POST'])
def materialize_commission_entries():
    try:
        data = json_body()
        data.setdefault('recordedBy', caller_identity(data, 'recordedBy'))
        try:
            payload = materialize_schema.load(data)
        except SchemaValidationError as err:
            return schema_error_response(err.messages)
        start, end, _ = resolve_period(payload['start'], payload['end'])
        entries = CommissionEntryService.materialize_booking_entries(
            payload['crew_user_id'], start, end, payload['recorded_by'], status=payload['status'])
        return jsonify(schema_many.dump(entries)), 201
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('materialize_commission_entries', e)
