from fastapi import APIRouter, Depends
from app.api.v1.endpoints import invoices, payments, reconciliation, representatives
from app.core.auth import get_current_operator

api_router = APIRouter(dependencies=[Depends(get_current_operator)])

api_router.include_router(representatives.router, prefix="/representatives", tags=["representatives"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
api_router.include_router(payments.router, prefix="/payments", tags=["payments"])
api_router.include_router(reconciliation.router, prefix="/reconcile", tags=["reconciliation"])
