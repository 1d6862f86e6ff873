from fastapi import APIRouter

from himind.api.routes import experts, health, processing, search, topics


router = APIRouter()

router.include_router(processing.router)
router.include_router(topics.router)
router.include_router(experts.router)
router.include_router(search.router)
router.include_router(health.router)
