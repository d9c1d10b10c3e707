# app/api/v1/router.py
from fastapi import APIRouter

from app.config.settings import settings
from app.modules.transfers.router import router as transfers_router


# Crear router principal de la API v1
api_router = APIRouter(prefix="/api/v1")

# ==================== MÓDULOS ====================

api_router.include_router(transfers_router)


# ==================== ENDPOINTS RAÍZ ====================

@api_router.get("/")
async def api_root():
    """Root endpoint de la API"""
    return {
        "message": f"{settings.app_name} v1",
        "version": settings.version,
        "status": "active",
        "available_endpoints": {
            "stock_transfers": "/api/v1/businesses/{business_id}/stock-transfers"
        }
    }

@api_router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.version,
        "modules": {
            "transfers": {
                "status": "active",
                "features": [
                    "Borradores con productos",
                    "Confirmación con descuento atómico",
                    "Recepción con ingreso en destino",
                    "Modo por sucursal y centralizado"
                ]
            }
        }
    }
