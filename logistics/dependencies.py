# logistics/dependencies.py
"""
FastAPI dependency wiring.

The Database handle and the services are built once in the app lifespan
and stored on app.state; endpoints receive them through Depends().
"""

from fastapi import HTTPException, Request, status

from logistics.database import Database
from logistics.services.base import BaseService, FailureKind
from logistics.services.customer_service import CustomerService
from logistics.services.order_service import OrderService

FAILURE_STATUS = {
    FailureKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    FailureKind.RULE: status.HTTP_400_BAD_REQUEST,
    FailureKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    FailureKind.CONFLICT: status.HTTP_409_CONFLICT,
    FailureKind.STORAGE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    FailureKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_database(request: Request) -> Database:
    return request.app.state.db


def get_customer_service(request: Request) -> CustomerService:
    return request.app.state.customer_service


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def raise_for_failure(service: BaseService) -> None:
    """Turn the service's last failure into an HTTPException."""
    kind = service.last_failure or FailureKind.INTERNAL
    raise HTTPException(
        status_code=FAILURE_STATUS[kind],
        detail=service.last_error or "Operation failed",
    )
