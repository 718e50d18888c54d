"""API v1 router."""

from fastapi import APIRouter

from depot.api.v1.files import router as files_router

router = APIRouter()

# No version prefix: the browser client calls /files directly
router.include_router(files_router, prefix="/files", tags=["files"])
