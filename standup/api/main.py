"""FastAPI application for the standup bot.

Serves the Jira OAuth callback and the Slack command and interactivity
endpoints. Run with:

    uvicorn standup.api.main:app
"""

import logging
import sys
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

from fastapi import FastAPI, Request

# Configure logging to stdout for uvicorn to capture
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logging.getLogger("standup").setLevel(logging.INFO)
from fastapi.responses import JSONResponse

from standup.api.container import AppContainer, build_container
from standup.api.routes import oauth_callback, slack
from standup.errors import DomainError, describe_error

logger = logging.getLogger(__name__)


def create_app(container: AppContainer | None = None) -> FastAPI:
    """Build the application.

    Args:
        container: Prebuilt dependencies. When omitted, the lifespan builds
            them from the environment, creates tables, and closes them on
            shutdown.

    Returns:
        Configured FastAPI app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: AppContainer | None = None
        if getattr(app.state, "container", None) is None:
            from standup.db.connection import init_db

            init_db()
            owned = build_container()
            app.state.container = owned

        if not app.state.container.settings.slack_signing_secret:
            logger.warning(
                "SLACK_SIGNING_SECRET is not set; Slack request signatures are not verified"
            )

        yield

        if owned is not None:
            await owned.aclose()
            app.state.container = None

    app = FastAPI(
        title="Standup Bot API",
        description="Weekly standup reports from Jira, delivered in Slack",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        """Render domain errors that escape a route as a JSON envelope."""
        settings = request.app.state.container.settings
        message, remediation = describe_error(
            exc, settings.report_command, settings.setup_command
        )
        return JSONResponse(
            status_code=400,
            content={
                "error_code": exc.code,
                "message": message,
                "remediation": remediation,
            },
        )

    app.include_router(oauth_callback.router)
    app.include_router(slack.router)

    @app.get("/health")
    def health_check() -> dict:
        """Liveness probe."""
        try:
            version = _pkg_version("standup-bot")
        except PackageNotFoundError:
            version = "unknown"
        return {"status": "healthy", "version": version}

    return app


app = create_app()
