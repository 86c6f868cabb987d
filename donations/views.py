import json
import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from donationledger import errors
from .services import reconciler, transitions

logger = logging.getLogger(__name__)


def _error_response(exc):
    return JsonResponse(exc.as_dict(), status=exc.status_code)


def _json_body(request):
    try:
        body = json.loads(request.body or b'{}')
    except (ValueError, UnicodeDecodeError):
        raise errors.ValidationError({'body': 'Request body must be valid JSON'})
    if not isinstance(body, dict):
        raise errors.ValidationError({'body': 'Request body must be a JSON object'})
    return body


def _int_param(request, name, field_errors):
    raw = request.GET.get(name, '').strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        field_errors[name] = f'{name} must be a whole number'
        return None


def _filters_from_request(request):
    field_errors = {}
    filters = reconciler.RecordFilter(
        status=request.GET.get('status') or None,
        month=_int_param(request, 'month', field_errors),
        year=_int_param(request, 'year', field_errors),
        search=request.GET.get('search') or None,
        hospital_id=_int_param(request, 'hospital_id', field_errors),
        source=request.GET.get('source') or None,
    )
    if filters.month is not None and not 1 <= filters.month <= 12:
        field_errors['month'] = 'month must be between 1 and 12'
    if field_errors:
        raise errors.ValidationError(field_errors)
    return filters


@require_GET
def record_list_view(request):
    try:
        records = reconciler.list_records(_filters_from_request(request))
    except errors.LifecycleError as exc:
        return _error_response(exc)
    return JsonResponse({
        'count': len(records),
        'records': [record.as_dict() for record in records],
    })


@require_GET
def record_stats_view(request):
    try:
        records = reconciler.list_records(_filters_from_request(request))
    except errors.LifecycleError as exc:
        return _error_response(exc)
    return JsonResponse({'stats': reconciler.record_stats(records)})


@csrf_exempt
@require_POST
def walk_in_view(request):
    try:
        record = transitions.create_walk_in(_json_body(request))
    except errors.LifecycleError as exc:
        logger.info("Walk-in rejected: %s", exc.message)
        return _error_response(exc)
    return JsonResponse({'record': record.as_dict()}, status=201)


@csrf_exempt
@require_POST
def record_transition_view(request, booking_id):
    action = None
    try:
        body = _json_body(request)
        action = body.get('action')
        if not action:
            raise errors.ValidationError({'action': 'action is required'})
        record = transitions.transition(booking_id, action, body.get('payload') or {})
    except errors.LifecycleError as exc:
        logger.info("Booking %s: %s rejected (%s) %s", booking_id, action, exc.code, exc.message)
        return _error_response(exc)
    if record is None:
        return JsonResponse({'deleted': True, 'booking_id': booking_id})
    return JsonResponse({'record': record.as_dict()})
