from fastapi import APIRouter

from coi_compliance.api.v1.endpoints import certificates, compliance, parties, templates

# Create API router
api_router = APIRouter()

# Include routers
api_router.include_router(templates.router, prefix="/templates", tags=["Templates"])
api_router.include_router(certificates.router, prefix="/certificates", tags=["Certificates"])
api_router.include_router(parties.router, prefix="/parties", tags=["Parties"])
api_router.include_router(compliance.router, prefix="/compliance", tags=["Compliance"])

__all__ = ["api_router"]
