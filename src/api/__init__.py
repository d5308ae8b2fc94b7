# API endpoints package

from src.api.agents import router as agents_router
from src.api.supervisor import router as supervisor_router

__all__ = [
    "agents_router",
    "supervisor_router",
]
