from fastapi import APIRouter

from sanpo.api.v1.endpoints import route

api_router = APIRouter()

api_router.include_router(route.router, prefix="/route", tags=["route"])
