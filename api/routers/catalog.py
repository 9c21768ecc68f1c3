"""
Service catalog API Endpoints.
"""

from typing import List

from fastapi import APIRouter, HTTPException

from api.models import QuoteRequest, QuoteResponse, ServiceResponse
from domain.service_catalog import SERVICES, is_known_service, quote_total

router = APIRouter()


@router.get("/services", response_model=List[ServiceResponse], summary="List Services")
def list_services():
    return [ServiceResponse.from_domain(service) for service in SERVICES]


@router.post("/services/quote", response_model=QuoteResponse, summary="Quote Services")
def quote_services(request: QuoteRequest):
    """Total of the base prices of the selected services (the leading `R <amount>` of each cost)."""
    unknown = [service_id for service_id in request.services if not is_known_service(service_id)]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown services: {', '.join(unknown)}")
    return QuoteResponse(services=request.services, total=quote_total(request.services))
