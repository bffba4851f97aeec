# hunt_lifecycle/api/v1/api.py

from fastapi import APIRouter

from hunt_lifecycle.api.v1.endpoints import cron, hunts

# This is the main router for the v1 API.
api_router = APIRouter()

api_router.include_router(hunts.router)
api_router.include_router(cron.router)
