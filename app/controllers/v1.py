from fastapi import APIRouter

from . import analyses, billing, support, users

router = APIRouter(prefix="/v1")
router.include_router(users.router)
# development-only helpers; handlers refuse outside APP_ENV=development
router.include_router(users.dev_router)
router.include_router(analyses.router)
router.include_router(support.router)
router.include_router(billing.router)
