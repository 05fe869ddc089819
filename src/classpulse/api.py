"""Summary: FastAPI application for ClassPulse.

Importance: Exposes student communication statistics and case notes over HTTP.
Alternatives: Use a CLI-only workflow or a different web framework.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from classpulse.app import build_services
from classpulse.config import AppConfig
from classpulse.errors import (
    AuthenticationExpired,
    ClassPulseError,
    PermissionScope,
)
from classpulse.models import TypeFilter
from classpulse.services import ProviderFactory


logger = logging.getLogger(__name__)


class CaseNoteCreateRequest(BaseModel):
    """Summary: Request payload for case note creation.

    Importance: Mirrors the field names used by the dashboard form.
    Alternatives: Accept free-form JSON and validate manually.
    """

    model_config = ConfigDict(populate_by_name=True)

    date: str = ""
    client_name: str = Field(default="", alias="clientName")
    discussion: str = ""
    barriers: str | None = None
    solutions: str | None = None
    next_steps: str | None = Field(default=None, alias="nextSteps")


class ClassifyRequest(BaseModel):
    """Summary: Request payload for message classification.

    Importance: Bounds how many metadata fetches one request can trigger.
    Alternatives: Accept ids as a comma-separated query parameter.
    """

    ids: list[str] = Field(default_factory=list, max_length=100)
    keywords: list[str] = Field(default_factory=list)


def parse_keywords(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def status_for_error(error: ClassPulseError) -> int:
    """Summary: Map ClassPulse errors to HTTP status codes.

    Importance: Lets clients choose between re-authentication, re-consent and retry.
    Alternatives: Return 500 for every failure.
    """

    if isinstance(error, AuthenticationExpired):
        return 401
    if isinstance(error, PermissionScope):
        return 403
    return 502


def create_app(config: AppConfig, provider_factory: ProviderFactory | None = None) -> FastAPI:
    """Summary: Create a FastAPI app wired to ClassPulse services.

    Importance: Ensures the API layer shares the same configuration and storage.
    Alternatives: Instantiate services globally outside the factory.
    """

    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=config.log_level.upper(), format="%(levelname)s %(name)s: %(message)s"
        )
    app = FastAPI(title="ClassPulse API", version="0.1.0")
    services = build_services(config, provider_factory=provider_factory)

    @app.exception_handler(ClassPulseError)
    async def handle_classpulse_error(request: Request, exc: ClassPulseError) -> JSONResponse:
        status_code = status_for_error(exc)
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.kind)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.message, "kind": exc.kind},
        )

    def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
        """Summary: Enforce API key authentication when configured.

        Importance: Adds a minimal security layer for local and private deployments.
        Alternatives: Use OAuth or session-based authentication.
        """

        if not config.api_key:
            return
        if x_api_key != config.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    def require_bearer_token(authorization: str | None = Header(default=None)) -> str:
        token = (authorization or "").removeprefix("Bearer ").strip()
        if not token:
            raise HTTPException(status_code=401, detail="Authorization token required")
        return token

    @app.get("/health")
    def health() -> dict[str, str]:
        """Summary: Health check endpoint.

        Importance: Supports uptime checks in local and cloud deployments.
        Alternatives: Use a metrics endpoint only.
        """

        return {"status": "ok"}

    @app.get("/gmail/stats", dependencies=[Depends(require_api_key)])
    async def gmail_stats(
        days: int | None = Query(default=None, ge=1, le=365),
        keywords: str | None = None,
        type_filter: TypeFilter = Query(default=TypeFilter.ALL, alias="type"),
        token: str = Depends(require_bearer_token),
    ) -> dict[str, Any]:
        """Summary: Return student email statistics for the requested window.

        Importance: Feeds the communication dashboard cards and chart.
        Alternatives: Compute statistics in the browser from raw listings.
        """

        stats = await services.communication.get_stats(
            token, window_days=days, keywords=parse_keywords(keywords), type_filter=type_filter
        )
        return {"stats": stats.to_dict()}

    @app.get("/gmail/threads", dependencies=[Depends(require_api_key)])
    async def gmail_threads(
        max_results: int | None = Query(default=None, alias="maxResults", ge=1, le=100),
        keywords: str | None = None,
        token: str = Depends(require_bearer_token),
    ) -> dict[str, Any]:
        """Summary: Return recent student conversation threads.

        Importance: Lists conversations that need follow-up.
        Alternatives: Link directly to a Gmail search.
        """

        threads = await services.communication.get_recent_threads(
            token, keywords=parse_keywords(keywords), max_results=max_results
        )
        return {"threads": [thread.to_dict() for thread in threads]}

    @app.post("/gmail/classify", dependencies=[Depends(require_api_key)])
    async def gmail_classify(
        payload: ClassifyRequest, token: str = Depends(require_bearer_token)
    ) -> dict[str, Any]:
        student_ids = await services.communication.classify_messages(
            token, payload.ids, keywords=payload.keywords
        )
        return {"studentMessageIds": student_ids, "checked": len(payload.ids)}

    @app.get("/case-notes", dependencies=[Depends(require_api_key)])
    def list_case_notes(client_name: str | None = Query(default=None, alias="clientName")) -> dict[str, Any]:
        notes = services.case_notes.list(client_name)
        return {
            "notes": [note.to_dict() for note in notes],
            "stats": services.case_notes.stats().to_dict(),
            "total": len(notes),
        }

    @app.post("/case-notes", status_code=201, dependencies=[Depends(require_api_key)])
    def create_case_note(payload: CaseNoteCreateRequest) -> dict[str, Any]:
        """Summary: Create a case note.

        Importance: Records advisor follow-ups alongside communication stats.
        Alternatives: Keep case notes in a separate document tool.
        """

        try:
            note = services.case_notes.create(
                payload.date,
                payload.client_name,
                payload.discussion,
                barriers=payload.barriers or "",
                solutions=payload.solutions or "",
                next_steps=payload.next_steps or "",
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {
            "note": note.to_dict(),
            "stats": services.case_notes.stats().to_dict(),
            "message": "Case note created successfully",
        }

    @app.delete("/case-notes/{note_id}", dependencies=[Depends(require_api_key)])
    def delete_case_note(note_id: str) -> dict[str, Any]:
        if not services.case_notes.delete(note_id):
            raise HTTPException(status_code=404, detail="Case note not found")
        return {"status": "ok", "stats": services.case_notes.stats().to_dict()}

    return app
