from fastapi import APIRouter

from app.api.routes import (
    atelier,
    auctions,
    auth,
    clienteling,
    contracts,
    escrow,
    events,
    fractional,
    health,
    investors,
    masterpieces,
    notifications,
    purchases,
    realtime,
    resale,
    users,
)

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(notifications.router)
api_router.include_router(masterpieces.router)
api_router.include_router(purchases.router)
api_router.include_router(contracts.router)
api_router.include_router(escrow.router)
api_router.include_router(auctions.router)
api_router.include_router(resale.router)
api_router.include_router(fractional.router)
api_router.include_router(atelier.router)
api_router.include_router(clienteling.router)
api_router.include_router(investors.router)
api_router.include_router(events.router)
api_router.include_router(realtime.router)
