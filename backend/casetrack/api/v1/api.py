"""
Main API router aggregator
"""
from fastapi import APIRouter

from casetrack.api.v1.endpoints import cases, proceedings

api_router = APIRouter()

api_router.include_router(cases.router, prefix="/cases", tags=["Cases"])
api_router.include_router(proceedings.router, prefix="/proceedings", tags=["Proceedings"])
