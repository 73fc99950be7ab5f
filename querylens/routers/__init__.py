# API routers for QueryLens
# Mounted under /api by querylens.app

from fastapi import APIRouter

from .databases import router as databases_router
from .events import router as events_router
from .events import ws_router
from .queries import router as queries_router

router = APIRouter()
router.include_router(events_router, prefix='/events', tags=['events'])
router.include_router(queries_router, prefix='/queries', tags=['queries'])
router.include_router(databases_router, prefix='/databases', tags=['databases'])

__all__ = ['router', 'ws_router']
