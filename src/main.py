"""
main.py

Entry point for the Production Project Workflow API.

Configures logging, wires the in-memory infrastructure into the FastAPI app
and starts uvicorn.

Usage
-----
    # Option 1 — run directly
    python main.py

    # Option 2 — run via uvicorn CLI (recommended for development)
    uvicorn main:app --reload --port 8000

Configuration comes from PROJECTS_* environment variables (see config.py),
e.g. PROJECTS_LOG_LEVEL=DEBUG to see which update fields get filtered out.

Once running, open your browser at:
    http://localhost:8000/docs      ← Swagger UI  (try every endpoint interactively)
    http://localhost:8000/redoc     ← ReDoc
    http://localhost:8000/health    ← liveness check

Quick-start walkthrough (use Swagger UI or curl)
-------------------------------------------------
Every call carries the actor headers, e.g.
    X-Actor-Id: client-1   X-Actor-Role: client   X-Company-Id: studio-1

1.  POST  /api/v1/projects                 — client-1 requests a project
2.  POST  /api/v1/projects/{id}/status     — admin-1 (studio-1) moves it to in_progress
3.  POST  /api/v1/projects/{id}/staff      — admin-1 assigns staff-1
4.  GET   /api/v1/me/notifications         — staff-1 sees the assignment
5.  PATCH /api/v1/projects/{id}            — staff-1 updates the description
6.  POST  /api/v1/projects/{id}/status     — admin-1 marks it completed
7.  GET   /api/v1/projects/{id}/activity   — admin-1 reviews the audit trail
"""

import logging

import uvicorn

from config import Settings, get_settings
from api import app, get_uow
from infrastructure import InMemoryUnitOfWork


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


settings = get_settings()
configure_logging(settings)


# ---------------------------------------------------------------------------
# Wire the concrete Unit of Work into the FastAPI dependency system.
# To swap databases, replace InMemoryUnitOfWork with your own implementation.
# ---------------------------------------------------------------------------

app.dependency_overrides[get_uow] = lambda: InMemoryUnitOfWork()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
