"""FastAPI adapter exposing the explain handler over HTTP."""

from __future__ import annotations

import json

from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from snippet_explainer.config import Settings
from snippet_explainer.orchestrator import ExplainHandler
from snippet_explainer.store import Store

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


def create_app(settings: Settings | None = None, handler: ExplainHandler | None = None) -> FastAPI:
    """Build the app; a handler is created from ``settings`` when not given."""
    settings = settings or Settings.from_env()
    if handler is None:
        store = Store(settings.db_path)
        store.init_db()
        handler = ExplainHandler.from_settings(settings, store)

    app = FastAPI(title="snippet-explainer")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    @app.get("/health")
    def health():
        return {"status": "ok", "model_configured": settings.model_configured}

    @app.post("/explain")
    async def explain(request: Request, authorization: str | None = Header(default=None)):
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            # Validated after auth so a bad body never masks a missing token.
            payload = None
        result = await handler.handle(authorization, payload)
        return JSONResponse(status_code=result.status_code, content=result.body)

    return app
