"""Slack slash command and interactivity endpoints.

Slack expects an HTTP 200 within three seconds, so both endpoints verify
the request, parse it, schedule the real work as a background task and
acknowledge with an empty body.
"""

import json
import logging
from urllib.parse import parse_qs

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from slack_sdk.signature import SignatureVerifier
from starlette.responses import JSONResponse

from standup.api.container import AppContainer, get_container
from standup.db.connection import get_db_context
from standup.slack.interactions import (
    Interaction,
    ReportCommand,
    parse_block_action,
    parse_report_command,
    parse_setup_command,
)
from standup.slack.report_command import run_report_command

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack", tags=["slack"])


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def parse_form(body: bytes) -> dict[str, str]:
    """Decode an x-www-form-urlencoded body, first value per field."""
    parsed = parse_qs(body.decode("utf-8"), keep_blank_values=True)
    return {name: values[0] for name, values in parsed.items()}


async def _read_verified_body(request: Request, container: AppContainer) -> bytes | None:
    """Return the raw body, or None if the signature does not verify."""
    body = await request.body()
    secret = container.settings.slack_signing_secret
    if not secret:
        return body
    try:
        valid = SignatureVerifier(secret).is_valid_request(body, dict(request.headers))
    except ValueError:
        # non-numeric X-Slack-Request-Timestamp
        valid = False
    if valid:
        return body
    logger.warning("Rejected Slack request with invalid signature")
    return None


async def run_setup_interaction(container: AppContainer, interaction: Interaction) -> None:
    """Background task: handle one setup wizard interaction."""
    try:
        with get_db_context(container.session_factory) as db:
            await container.setup_wizard(db).handle(interaction)
    except Exception as e:
        logger.error(
            "Setup wizard failed for %s (%s): %s: %s",
            interaction.slack_user_id, type(interaction).__name__, type(e).__name__, e,
            exc_info=True,
        )


async def run_report(container: AppContainer, command: ReportCommand) -> None:
    """Background task: generate and deliver a report."""
    settings = container.settings
    try:
        with get_db_context(container.session_factory) as db:
            await run_report_command(
                command,
                container.user_service(db),
                container.report_service(db),
                container.slack,
                report_command=settings.report_command,
                setup_command=settings.setup_command,
            )
    except Exception as e:
        logger.error(
            "Report task failed for %s: %s: %s",
            command.slack_user_id, type(e).__name__, e,
            exc_info=True,
        )


@router.post("/commands")
async def slash_command(
    request: Request,
    background_tasks: BackgroundTasks,
    container: AppContainer = Depends(get_container),
):
    """Receive a slash command."""
    body = await _read_verified_body(request, container)
    if body is None:
        return _error(401, "INVALID_SIGNATURE", "Slack signature verification failed")

    form = parse_form(body)
    if not form.get("user_id"):
        return _error(400, "INVALID_PAYLOAD", "Missing user_id")

    command = form.get("command", "")
    settings = container.settings
    if command == settings.setup_command:
        background_tasks.add_task(run_setup_interaction, container, parse_setup_command(form))
    elif command == settings.report_command:
        background_tasks.add_task(run_report, container, parse_report_command(form))
    else:
        logger.warning("Unknown slash command %r", command)
        return JSONResponse(
            {"response_type": "ephemeral", "text": f"Unknown command `{command}`."}
        )
    return Response(status_code=200)


@router.post("/interactions")
async def interaction(
    request: Request,
    background_tasks: BackgroundTasks,
    container: AppContainer = Depends(get_container),
):
    """Receive a block action from a setup modal."""
    body = await _read_verified_body(request, container)
    if body is None:
        return _error(401, "INVALID_SIGNATURE", "Slack signature verification failed")

    raw_payload = parse_form(body).get("payload")
    if not raw_payload:
        return _error(400, "INVALID_PAYLOAD", "Missing payload")
    try:
        payload = json.loads(raw_payload)
    except json.JSONDecodeError:
        return _error(400, "INVALID_PAYLOAD", "Payload is not valid JSON")
    if not isinstance(payload, dict):
        return _error(400, "INVALID_PAYLOAD", "Payload is not an object")

    parsed = parse_block_action(payload)
    if parsed is not None:
        background_tasks.add_task(run_setup_interaction, container, parsed)
    return Response(status_code=200)
