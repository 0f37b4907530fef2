from fastapi import APIRouter
from tracker.api.routes.health import router as health
from tracker.api.routes.log_entries import router as log_entries
from tracker.api.routes.videos import router as videos
from tracker.api.routes.imports import router as imports
from tracker.api.routes.channels import router as channels

router = APIRouter()
router.include_router(health)
router.include_router(log_entries)
router.include_router(videos)
router.include_router(imports)
router.include_router(channels)
