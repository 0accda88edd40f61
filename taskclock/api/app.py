from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from .. import __version__
from ..clock import Clock
from ..config import TaskClockSettings, get_settings
from ..errors import CategoryNotFoundError, TaskNotFoundError
from ..users import WorkspaceRegistry
from .routes.analytics import router as analytics_router
from .routes.categories import router as categories_router
from .routes.export import router as export_router
from .routes.health import router as health_router
from .routes.logs import router as logs_router
from .routes.meta import router as meta_router
from .routes.report import router as report_router
from .routes.tasks import router as tasks_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    stopped = await app.state.registry.shutdown()
    logger.info("application shutdown force-stopped %d interval(s)", stopped)


def create_app(
    data_dir: Path | None = None,
    clock: Clock | None = None,
    tick_seconds: float | None = None,
    default_user: str | None = None,
    settings: TaskClockSettings | None = None,
    frontend_dist: Path | None = None,
    dev_url: str | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    registry = WorkspaceRegistry(
        Path(data_dir or settings.data_dir),
        clock=clock,
        tick_seconds=tick_seconds or settings.tick_seconds,
        journal_mode=settings.journal_mode,
    )

    app = FastAPI(title="TaskClock API", version=__version__, lifespan=_lifespan)
    app.state.registry = registry
    app.state.default_user = default_user or settings.default_user

    app.add_exception_handler(TaskNotFoundError, _not_found)
    app.add_exception_handler(CategoryNotFoundError, _not_found)
    app.add_exception_handler(ValueError, _bad_request)

    app.include_router(health_router)
    app.include_router(meta_router)
    app.include_router(tasks_router)
    app.include_router(logs_router)
    app.include_router(analytics_router)
    app.include_router(categories_router)
    app.include_router(report_router)
    app.include_router(export_router)

    if dev_url:
        app.add_api_route("/", lambda: HTMLResponse(_dev_html(dev_url)), methods=["GET"])
    elif frontend_dist and (frontend_dist / "index.html").exists():
        app.mount("/", StaticFiles(directory=str(frontend_dist), html=True), name="frontend")
    else:
        app.add_api_route("/", lambda: HTMLResponse(_missing_frontend_html()), methods=["GET"])

    return app


def create_default_app() -> FastAPI:
    settings = get_settings()
    frontend_dist = Path(__file__).resolve().parents[1] / "frontend" / "dist"
    return create_app(settings=settings, frontend_dist=frontend_dist, dev_url=settings.dev_url)


async def _not_found(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def _bad_request(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _missing_frontend_html() -> str:
    return """
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>TaskClock</title>
    <style>
      body { font-family: system-ui, sans-serif; margin: 0; padding: 2rem; background: #f6f8fb; color: #111827; }
      code { background: #e5e7eb; padding: 0.2rem 0.4rem; border-radius: 0.25rem; }
      .card { max-width: 760px; margin: 2rem auto; background: white; border: 1px solid #e5e7eb; border-radius: 0.75rem; padding: 1.25rem; }
    </style>
  </head>
  <body>
    <div class="card">
      <h1>TaskClock API is running</h1>
      <p>No frontend build was found. The JSON API lives under <code>/api/v1</code>.</p>
      <p>Interactive docs: <a href="/docs"><code>/docs</code></a></p>
    </div>
  </body>
</html>
"""


def _dev_html(dev_url: str) -> str:
    return f"""
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta http-equiv="refresh" content="0; url={dev_url}" />
    <title>TaskClock</title>
  </head>
  <body>
    Redirecting to the frontend dev server: {dev_url}
  </body>
</html>
"""


app = create_default_app()
