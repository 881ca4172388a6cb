from fastapi import APIRouter

from agent_runtime.platform.server.routes.agent import agent_router
from agent_runtime.platform.server.routes.base import base_router

root = APIRouter()
root.include_router(base_router)
root.include_router(agent_router)
