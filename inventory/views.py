import logging

from django.http import JsonResponse
from django.views.decorators.http import require_GET

from donationledger import errors
from donations.models import Unit
from donations.services.expiry import expiry_summary
from .services import ledger

logger = logging.getLogger(__name__)


@require_GET
def stock_summary_view(request, hospital_id):
    try:
        summary = ledger.get_stock_summary(hospital_id)
    except errors.NotFoundError as exc:
        return JsonResponse(exc.as_dict(), status=exc.status_code)

    stored_units = Unit.objects.filter(hospital_id=hospital_id, storage_status=Unit.StorageStatus.STORED)
    return JsonResponse({
        'hospital_id': hospital_id,
        'stock': summary,
        'expiry': expiry_summary(stored_units),
    })
