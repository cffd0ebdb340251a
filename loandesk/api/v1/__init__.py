from fastapi import APIRouter

from loandesk.api.v1.routers import checklists, documents, health, tasks

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(checklists.router)
api_router.include_router(documents.router)
api_router.include_router(tasks.router)

__all__ = ["api_router"]
