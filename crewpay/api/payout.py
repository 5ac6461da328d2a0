from flask import Blueprint, request, jsonify
from marshmallow import ValidationError as SchemaValidationError

from crewpay.schemas.commission_entry_schema import StatusUpdateSchema
from crewpay.schemas.payout_schema import PayoutAuditSchema, PayoutCreateSchema, PayoutDetailSchema, PayoutSchema
from crewpay.services.errors import ServiceError, NotFoundError
from crewpay.services.payout_service import PayoutService
from crewpay.utils.responses import (
    caller_identity, json_body, schema_error_response, service_error_response, unexpected_error_response,
)
import logging

payout_bp = Blueprint('payout', __name__)
schema = PayoutSchema()
schema_many = PayoutSchema(many=True)
detail_schema = PayoutDetailSchema()
create_schema = PayoutCreateSchema()
status_schema = StatusUpdateSchema()
audit_schema = PayoutAuditSchema()


@payout_bp.route('/payouts', methods=['GET'])
def list_payouts():
    try:
        payouts = PayoutService.list_payouts(
            crew_user_id=request.args.get('crewUserId'),
            status=request.args.get('status'),
        )
        return jsonify(schema_many.dump(payouts)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('list_payouts', e)


@payout_bp.route('/payouts/<int:payout_id>', methods=['GET'])
def get_payout(payout_id):
    try:
        payout = PayoutService.get_by_id(payout_id)
        if not payout:
            raise NotFoundError(f"Payout {payout_id} not found.")
        return jsonify(detail_schema.dump(payout)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('get_payout', e)


@payout_bp.route('/payouts/<int:payout_id>/audit', methods=['GET'])
def audit_payout(payout_id):
    try:
        return jsonify(audit_schema.dump(PayoutService.audit(payout_id))), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('audit_payout', e)


@payout_bp.route('/payouts', methods=['POST'])
def create_payout():
    try:
        data = json_body()
        data.setdefault('createdBy', caller_identity(data, 'createdBy'))
        try:
            payload = create_schema.load(data)
        except SchemaValidationError as err:
            return schema_error_response(err.messages)
        payout = PayoutService.create_payout(
            crew_user_id=payload['crew_user_id'],
            period_start=payload['period_start'],
            period_end=payload['period_end'],
            total_amount=payload['total_amount'],
            created_by=payload['created_by'],
            status=payload['status'],
            entry_ids=payload['entry_ids'],
        )
        return jsonify(detail_schema.dump(payout)), 201
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('create_payout', e)


@payout_bp.route('/payouts/<int:payout_id>/status', methods=['PATCH'])
def update_payout_status(payout_id):
    try:
        data = json_body()
        actor = caller_identity(data, 'updatedBy')
        try:
            payload = status_schema.load({'status': data.get('status')})
        except SchemaValidationError as err:
            return schema_error_response(err.messages)
        payout = PayoutService.update_payout_status(payout_id, payload['status'])
        logging.info(f"Payout {payout_id} status set to {payout.status} by {actor}")
        return jsonify(detail_schema.dump(payout)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('update_payout_status', e)
