from fastapi import APIRouter

from cabinet.api.v1.endpoints import folders, files, shares

api_router = APIRouter()

# Include routers
api_router.include_router(folders.router, prefix="/folders", tags=["folders"])
api_router.include_router(files.router, prefix="/files", tags=["files"])
api_router.include_router(shares.router, prefix="/shares", tags=["shares"])
