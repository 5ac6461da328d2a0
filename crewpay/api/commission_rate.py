from flask import Blueprint, request, jsonify
from marshmallow import ValidationError as SchemaValidationError

from crewpay.schemas.commission_rate_schema import CommissionRateSchema, CommissionRateUpsertSchema
from crewpay.services.commission_rate_service import CommissionRateService
from crewpay.services.errors import ServiceError
from crewpay.utils.responses import (
    caller_identity, json_body, schema_error_response, service_error_response, unexpected_error_response,
)
import logging

commission_rate_bp = Blueprint('commission_rate', __name__)
schema = CommissionRateSchema()
schema_many = CommissionRateSchema(many=True)
upsert_schema = CommissionRateUpsertSchema()


@commission_rate_bp.route('/commission-rates', methods=['GET'])
def list_commission_rates():
    try:
        include_inactive = request.args.get('includeInactive', 'false').lower() == 'true'
        rates = CommissionRateService.list_rates(include_inactive=include_inactive)
        return jsonify(schema_many.dump(rates)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('list_commission_rates', e)


@commission_rate_bp.route('/commission-rates', methods=['PUT'])
def upsert_commission_rate():
    try:
        data = json_body()
        actor = caller_identity(data, 'updatedBy')
        try:
            payload = upsert_schema.load(data)
        except SchemaValidationError as err:
            return schema_error_response(err.messages)
        rate = CommissionRateService.upsert_rate(payload['service_type'], payload['rate_percent'])
        logging.info(f"Commission rate '{rate.service_type}' updated by {actor}")
        return jsonify(schema.dump(rate)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('upsert_commission_rate', e)


@commission_rate_bp.route('/commission-rates/<path:service_type>/deactivate', methods=['PATCH'])
def deactivate_commission_rate(service_type):
    try:
        actor = caller_identity(json_body(), 'updatedBy')
        rate = CommissionRateService.deactivate_rate(service_type)
        logging.info(f"Commission rate '{rate.service_type}' deactivated by {actor}")
        return jsonify(schema.dump(rate)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('deactivate_commission_rate', e)
