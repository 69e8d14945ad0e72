"""FastAPI server exposing chat, knowledge and channel webhook endpoints."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional
from urllib.parse import parse_qsl

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from city_assistant.app import CityAssistantApp
from city_assistant.channels.models import MalformedRequestError
from city_assistant.knowledge.models import KnowledgeQuery
from city_assistant.log import bind_request_context, get_logger

logger = get_logger(__name__)

MAX_LOG_LIMIT = 200


class KnowledgeSearchRequest(BaseModel):
    query: str = Field(default="", description="Search text")
    limit: int = Field(default=5, ge=1)
    includeContent: bool = True
    section: Optional[str] = None


async def _read_payload(request: Request) -> dict[str, Any]:
    """Accept JSON or form-encoded webhook bodies."""
    content_type = request.headers.get("content-type", "")
    body = await request.body()
    if "application/x-www-form-urlencoded" in content_type:
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedRequestError("Request body must be UTF-8") from None
        return dict(parse_qsl(text, keep_blank_values=True))
    if not body:
        return {}
    try:
        data = await request.json()
    except ValueError:
        raise MalformedRequestError("Request body must be JSON") from None
    if not isinstance(data, dict):
        raise MalformedRequestError("Request body must be an object")
    return data


def _request_metadata(request: Request) -> dict[str, str]:
    return {
        "user_agent": request.headers.get("user-agent", "unknown"),
        "referrer": request.headers.get("referer", "unknown"),
    }


def create_app(assistant: CityAssistantApp) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await assistant.start()
        try:
            yield
        finally:
            await assistant.stop()

    app = FastAPI(title="City Assistant", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=assistant.config.server.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    app.state.assistant = assistant

    @app.exception_handler(MalformedRequestError)
    async def _malformed(_: Request, exc: MalformedRequestError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.get("/health")
    async def health() -> dict:
        services = await assistant.service_manager.health_check_all()
        return {"status": "ok", "documents": len(assistant.index), "services": services}

    @app.get("/api/knowledge")
    async def browse_knowledge(q: str = "", section: str = "", limit: Optional[int] = None) -> dict:
        knowledge = assistant.config.knowledge
        result = assistant.index.query(
            KnowledgeQuery(query=q, section=section or None, limit=limit, include_content=False),
            default_limit=knowledge.browse_limit,
            max_limit=knowledge.max_browse_limit,
        )
        return result.to_dict()

    @app.post("/api/knowledge")
    async def search_knowledge(payload: KnowledgeSearchRequest) -> dict:
        if not payload.query.strip():
            raise HTTPException(status_code=400, detail="Query is required")
        result = assistant.index.query(
            KnowledgeQuery(
                query=payload.query,
                section=payload.section,
                limit=payload.limit,
                include_content=payload.includeContent,
            ),
            default_limit=assistant.config.knowledge.context_limit,
            max_limit=assistant.config.knowledge.max_browse_limit,
        )
        data = result.to_dict()
        data.pop("section", None)
        return data

    @app.get("/api/logs")
    async def conversation_logs(sessionId: str = "", limit: int = 50) -> dict:
        """Recent conversation log entries, newest first, or one session's entries oldest first."""
        if sessionId:
            entries = await assistant.log_repo.for_session(sessionId)
        else:
            entries = await assistant.log_repo.recent(max(1, min(limit, MAX_LOG_LIMIT)))
        return {"count": len(entries), "conversations": [entry.to_dict() for entry in entries]}

    @app.post("/api/knowledge/reload")
    async def reload_knowledge() -> dict:
        try:
            stats = await assistant.reload_knowledge()
        except (FileNotFoundError, ValueError) as e:
            logger.error("knowledge_reload_failed", error=str(e))
            raise HTTPException(status_code=409, detail=str(e)) from None
        return stats.to_dict()

    @app.post("/api/chat")
    async def chat(request: Request) -> JSONResponse:
        payload = await _read_payload(request)
        bind_request_context(channel="web")
        data = await assistant.web.handle(payload, _request_metadata(request))
        status = 503 if data.get("error") == "configuration_error" else 200
        return JSONResponse(status_code=status, content=data)

    @app.post("/api/ivr/process")
    async def ivr_process(request: Request) -> JSONResponse:
        payload = await _read_payload(request)
        bind_request_context(channel="ivr")
        reply = await assistant.ivr.handle(payload, _request_metadata(request))
        return JSONResponse(content=jsonable_encoder(reply))

    @app.post("/api/sms")
    async def sms(request: Request) -> JSONResponse:
        payload = await _read_payload(request)
        bind_request_context(channel="sms")
        reply = await assistant.sms.handle(payload, _request_metadata(request))
        return JSONResponse(content=jsonable_encoder(reply))

    @app.post("/api/social")
    async def social(request: Request) -> JSONResponse:
        payload = await _read_payload(request)
        bind_request_context(channel="social")
        reply = await assistant.social.handle(payload, _request_metadata(request))
        return JSONResponse(content=jsonable_encoder(reply))

    return app


__all__ = ["create_app"]
