"""FastAPI application that exposes the analytics and rule API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from . import __version__
from .aggregation import AggregationEngine, DateRange
from .categories import CategoryStore
from .config import AnalyticsSettings
from .db import database_connection, prepare_database
from .errors import AnalyticsError
from .palette import CategoryPalette
from .paths import get_db_path
from .recategorize import RecategorizationExecutor
from .rules import RuleEngine

logger = logging.getLogger(__name__)


class RulePayload(BaseModel):
    pattern: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("pattern", "app")
    )
    category_id: Any = None
    field: Any = None

    model_config = ConfigDict(extra="forbid")


class RuleUpdatePayload(BaseModel):
    category_id: Any = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    settings: Optional[AnalyticsSettings] = None,
    palette: Optional[CategoryPalette] = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    resolved_settings = settings or AnalyticsSettings()

    prepare_database(
        resolved_db_path, builtin_priority=resolved_settings.builtin_rule_priority
    )

    app = FastAPI(title="Activity Analytics", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.settings = resolved_settings
    app.state.executor = RecategorizationExecutor()
    app.state.palette = palette or CategoryPalette()

    def connect(request: Request):
        return database_connection(
            request.app.state.db_path,
            timeout=request.app.state.settings.busy_timeout,
        )

    def rule_engine(request: Request, conn) -> RuleEngine:
        return RuleEngine(conn, request.app.state.executor, request.app.state.settings)

    @app.exception_handler(AnalyticsError)
    async def _analytics_error(request: Request, exc: AnalyticsError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return {
            "database_path": str(request.app.state.db_path),
            "version": __version__,
        }

    @app.get("/api/summary")
    def summary(
        request: Request,
        start: Optional[str] = Query(
            default=None, alias="from", description="Start date in YYYY-MM-DD format (inclusive)."
        ),
        end: Optional[str] = Query(
            default=None, alias="to", description="End date in YYYY-MM-DD format (inclusive)."
        ),
        group_by: str = Query(default="category", alias="groupBy"),
    ) -> Dict[str, Any]:
        with connect(request) as conn:
            return AggregationEngine(conn, request.app.state.settings).summary(
                DateRange.parse(start, end), group_by=group_by
            )

    @app.get("/api/apps")
    def apps(
        request: Request,
        start: Optional[str] = Query(default=None, alias="from"),
        end: Optional[str] = Query(default=None, alias="to"),
        limit: Optional[int] = Query(default=None, ge=1),
    ) -> list[Dict[str, Any]]:
        with connect(request) as conn:
            return AggregationEngine(conn, request.app.state.settings).app_breakdown(
                DateRange.parse(start, end), limit=limit
            )

    @app.get("/api/apps/{name}/details")
    def app_details(
        name: str,
        request: Request,
        start: Optional[str] = Query(default=None, alias="from"),
        end: Optional[str] = Query(default=None, alias="to"),
    ) -> Dict[str, Any]:
        with connect(request) as conn:
            return AggregationEngine(conn, request.app.state.settings).app_sessions(
                name, DateRange.parse(start, end)
            )

    @app.get("/api/timeline")
    def timeline(
        request: Request,
        start: Optional[str] = Query(default=None, alias="from"),
        end: Optional[str] = Query(default=None, alias="to"),
        limit: Optional[int] = Query(default=None, ge=1),
    ) -> list[Dict[str, Any]]:
        with connect(request) as conn:
            return AggregationEngine(conn, request.app.state.settings).timeline(
                DateRange.parse(start, end), limit=limit
            )

    @app.get("/api/productivity")
    def productivity(
        request: Request,
        start: Optional[str] = Query(default=None, alias="from"),
        end: Optional[str] = Query(default=None, alias="to"),
    ) -> Dict[str, Any]:
        with connect(request) as conn:
            return AggregationEngine(conn, request.app.state.settings).productivity(
                DateRange.parse(start, end)
            )

    @app.get("/api/trends")
    def trends(
        request: Request,
        start: Optional[str] = Query(default=None, alias="from"),
        end: Optional[str] = Query(default=None, alias="to"),
        interval: str = Query(default="day"),
    ) -> list[Dict[str, Any]]:
        with connect(request) as conn:
            return AggregationEngine(conn, request.app.state.settings).trends(
                DateRange.parse(start, end), interval=interval
            )

    @app.get("/api/focus")
    def focus(
        request: Request,
        start: Optional[str] = Query(default=None, alias="from"),
        end: Optional[str] = Query(default=None, alias="to"),
    ) -> Dict[str, Any]:
        with connect(request) as conn:
            return AggregationEngine(conn, request.app.state.settings).focus(
                DateRange.parse(start, end)
            )

    @app.get("/api/current")
    def current(request: Request) -> Optional[Dict[str, Any]]:
        with connect(request) as conn:
            return AggregationEngine(conn, request.app.state.settings).current()

    @app.get("/api/categories")
    def categories(request: Request) -> list[Dict[str, Any]]:
        palette: CategoryPalette = request.app.state.palette
        with connect(request) as conn:
            rows = CategoryStore(conn).list_categories()
        return [
            {
                "id": category.id,
                "name": category.name,
                "parent_id": category.parent_id,
                "productivity_score": category.productivity_score,
                "color": palette.color_for(category.name),
            }
            for category in rows
        ]

    @app.get("/api/rules")
    def list_rules(request: Request) -> list[Dict[str, Any]]:
        with connect(request) as conn:
            rules = rule_engine(request, conn).list_rules()
        return [rule.to_dict() for rule in rules]

    @app.post("/api/rules")
    def create_or_update_rule(payload: RulePayload, request: Request) -> Dict[str, Any]:
        with connect(request) as conn:
            updated = rule_engine(request, conn).upsert_rule(
                payload.field, payload.pattern, payload.category_id
            )
        return {"success": True, "updated": updated}

    @app.put("/api/rules/{rule_id}")
    def update_rule(
        rule_id: int, payload: RuleUpdatePayload, request: Request
    ) -> Dict[str, Any]:
        with connect(request) as conn:
            updated = rule_engine(request, conn).update_rule_category(
                rule_id, payload.category_id
            )
        return {"success": True, "updated": updated}

    @app.delete("/api/rules/{rule_id}")
    def delete_rule(rule_id: int, request: Request) -> Dict[str, Any]:
        with connect(request) as conn:
            recategorized = rule_engine(request, conn).delete_rule(rule_id)
        return {"success": True, "recategorized": recategorized}

    return app
