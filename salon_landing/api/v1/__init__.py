"""V1 API router aggregation."""

from fastapi import APIRouter

from salon_landing.api.v1.accounts import router as accounts_router
from salon_landing.api.v1.intake import router as intake_router
from salon_landing.api.v1.provisioning import router as provisioning_router
from salon_landing.api.v1.staging import router as staging_router

v1_router = APIRouter(prefix="/v1")
v1_router.include_router(accounts_router)
v1_router.include_router(intake_router)
v1_router.include_router(provisioning_router)
v1_router.include_router(staging_router)
