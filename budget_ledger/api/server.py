"""
HTTP endpoint for the tagged-action channel.

One POST route takes every action; a GET route reports liveness.
Run with `uvicorn --factory budget_ledger.api.server:create_app`.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, FastAPI, Request

from budget_ledger import __version__
from budget_ledger.api.dispatcher import ActionDispatcher
from budget_ledger.engine import ReconciliationEngine, create_engine


logger = structlog.get_logger(__name__)


def create_app(engine: Optional[ReconciliationEngine] = None) -> FastAPI:
    """Build the FastAPI app around an engine (configured one by default)."""
    dispatcher = ActionDispatcher(engine or create_engine())
    router = APIRouter(tags=["ledger"])

    @router.post("/exec")
    async def exec_action(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            return {"status": "error", "message": "Request body is not valid JSON"}
        if not isinstance(payload, dict):
            return {"status": "error", "message": "Request body must be a JSON object"}
        return await dispatcher.dispatch(payload)

    @router.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    app = FastAPI(title="Construction Budget Ledger", version=__version__)
    app.include_router(router)
    logger.info("app_created")
    return app

