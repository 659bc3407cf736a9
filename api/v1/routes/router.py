from fastapi import APIRouter

from packages.billing.routes import billing

api_router = APIRouter()

# Billing routes (authentication is handled upstream of this service)
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
