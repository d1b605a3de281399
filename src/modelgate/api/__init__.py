from fastapi import APIRouter

from modelgate.api.models import router as models_router
from modelgate.api.ops import router as ops_router
from modelgate.api.structured import router as structured_router
from modelgate.api.text import router as text_router
from modelgate.api.vision import router as vision_router

api_router = APIRouter()
api_router.include_router(ops_router)
api_router.include_router(models_router, prefix="/v1")
api_router.include_router(text_router, prefix="/v1")
api_router.include_router(structured_router, prefix="/v1")
api_router.include_router(vision_router, prefix="/v1")

__all__ = ["api_router"]
