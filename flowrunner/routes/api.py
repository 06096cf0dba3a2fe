"""REST API router."""

from fastapi import APIRouter

from . import executions, nodes

router = APIRouter(prefix="/api")
router.include_router(executions.router)
router.include_router(nodes.router)
