from flask import Blueprint, current_app, request, jsonify

from crewpay.schemas.commission_summary_schema import (
    CommissionSummarySchema, CrewPayrollSchema, PayrollWindowSchema,
)
from crewpay.services.commission_summary_service import CommissionSummaryService
from crewpay.services.errors import ServiceError, ValidationError
from crewpay.utils.payroll_window import current_window, window_for
from crewpay.utils.responses import period_arg, service_error_response, unexpected_error_response
from crewpay.utils.timezone_utils import convert_utc_to_display

payroll_bp = Blueprint('payroll', __name__)
summary_schema = CommissionSummarySchema()
payroll_schema = CrewPayrollSchema()
window_schema = PayrollWindowSchema()


@payroll_bp.route('/commission-summary', methods=['GET'])
def commission_summary():
    """
    Organization-wide commission summary.

    Query Parameters:
    - start (string, optional): period start, defaults to the current payroll window
    - end (string, optional): period end, defaults to the current payroll window
    """
    try:
        summary = CommissionSummaryService.summary(period_arg('start'), period_arg('end', end_of_day=True))
        return jsonify(summary_schema.dump(summary)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('commission_summary', e)


@payroll_bp.route('/payroll', methods=['GET'])
def crew_payroll():
    """
    Payroll detail for one crew member.

    Query Parameters:
    - crewUserId (string): crew member (required)
    - start, end (string, optional): period, defaults to the current payroll window
    """
    try:
        crew_user_id = request.args.get('crewUserId')
        if not crew_user_id:
            raise ValidationError('crewUserId is required', {'crewUserId': ['Missing data for required field.']})
        detail = CommissionSummaryService.crew_payroll(
            crew_user_id, period_arg('start'), period_arg('end', end_of_day=True))
        return jsonify(payroll_schema.dump(detail)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('crew_payroll', e)


@payroll_bp.route('/payroll/window', methods=['GET'])
def payroll_window():
    """Payroll window containing ``reference`` (default: now), on the display timezone's clock."""
    try:
        reference = period_arg('reference')
        if reference is None:
            window = current_window()
        else:
            window = window_for(convert_utc_to_display(reference),
                                payout_hour=current_app.config.get('PAYROLL_PAYOUT_HOUR', 9))
        return jsonify(window_schema.dump(window)), 200
    except ServiceError as se:
        return service_error_response(se)
    except Exception as e:
        return unexpected_error_response('payroll_window', e)
