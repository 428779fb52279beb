from fastapi import APIRouter

from backend.app.api.routes import (
    analytics,
    frames,
    interactions,
    offers,
    products,
    recommendations,
    scan,
    users,
    x402,
)

api_router = APIRouter()
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(interactions.router, prefix="/interactions", tags=["interactions"])
api_router.include_router(recommendations.router, prefix="/recommendations", tags=["recommendations"])
api_router.include_router(offers.router, prefix="/offers", tags=["offers"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(scan.router, prefix="/scan", tags=["scan"])
api_router.include_router(frames.router, prefix="/frames", tags=["frames"])
api_router.include_router(x402.router, prefix="/x402", tags=["x402"])
