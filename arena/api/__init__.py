from fastapi import APIRouter
from .routes import matches, tournaments, streams, control

api_router = APIRouter()

api_router.include_router(matches.router, prefix="/matches", tags=["matches"])
api_router.include_router(tournaments.router, prefix="/tournaments", tags=["tournaments"])
api_router.include_router(streams.router, prefix="/streams", tags=["streams"])
api_router.include_router(control.router, prefix="/control", tags=["control"])
