# deck_export/api/export.py
import json
import uuid

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from deck_export.api.dependencies import get_orchestrator
from deck_export.errors import RendererError, ValidationError
from deck_export.models import ExportOptions, ExportRequest, Issue, SprintMetrics
from deck_export.services.export_analytics import TIME_RANGES
from deck_export.services.export_orchestrator import ExportOrchestrator
from deck_export.services.exporters.base_renderer import ExportResult
from deck_export.utils.logging import logger

router = APIRouter(prefix="/api/export")


def _error(status_code: int, error: str, details=None) -> JSONResponse:
    content = {"error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def _pydantic_details(e: PydanticValidationError) -> list:
    # Round-trip through JSON so error contexts are always serializable
    return json.loads(e.json(include_url=False))


async def _read_body(request: Request):
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _artifact_response(result: ExportResult, file_name: str, request_id: str) -> Response:
    return Response(
        content=result.blob,
        media_type=result.media_type,
        headers={
            "Content-Disposition": f'attachment; filename="{file_name}"',
            "Content-Length": str(result.file_size),
            "X-Request-ID": request_id,
        },
    )


@router.get("/analytics")
async def export_analytics(
    time_range: str = Query("all", alias="range"),
    orchestrator: ExportOrchestrator = Depends(get_orchestrator),
):
    """Usage metrics, per-format patterns and error analysis for renders run by this process."""
    if time_range not in TIME_RANGES:
        return _error(400, f"Unknown time range: {time_range}", [f"range must be one of: {', '.join(TIME_RANGES)}"])
    return {"success": True, **orchestrator.analytics.summary(time_range)}


@router.post("/metrics")
async def export_metrics(request: Request, orchestrator: ExportOrchestrator = Depends(get_orchestrator)):
    """Executive metrics document built from sprint metrics alone."""
    request_id = uuid.uuid4().hex[:12]
    body = await _read_body(request)
    if not body or not body.get("sprintMetrics"):
        return _error(400, "Sprint metrics data is required")

    try:
        sprint_metrics = SprintMetrics.model_validate(body["sprintMetrics"])
        all_issues = [Issue.model_validate(i) for i in body.get("allIssues") or []]
        options = ExportOptions.model_validate({**(body.get("options") or {}), "format": "executive"})
    except PydanticValidationError as e:
        return _error(400, "Invalid export request", _pydantic_details(e))

    try:
        result = await orchestrator.export_executive_metrics(sprint_metrics, all_issues, options)
    except ValidationError as e:
        return _error(400, str(e), e.errors)
    except RendererError as e:
        logger.error(f"Executive metrics export failed: {e}", extra={"request_id": request_id})
        return _error(500, "Failed to generate executive metrics export", e.to_dict())

    presentation = orchestrator.build_metrics_presentation(sprint_metrics)
    file_name = orchestrator.generate_file_name(presentation, "executive", executive_format=True)
    logger.info(
        f"Executive metrics export served: {file_name}",
        extra={"request_id": request_id, "export_format": "executive"},
    )
    return _artifact_response(result, file_name, request_id)


@router.post("/{fmt}")
async def export_presentation(
    fmt: str,
    request: Request,
    orchestrator: ExportOrchestrator = Depends(get_orchestrator),
):
    """Render a presentation in the format named by the path; the body's options.format is ignored."""
    request_id = uuid.uuid4().hex[:12]
    body = await _read_body(request)
    if not body or not body.get("presentation"):
        return _error(400, "Presentation data is required")

    payload = {**body, "options": {**(body.get("options") or {}), "format": fmt}}
    try:
        export_request = ExportRequest.model_validate(payload)
    except PydanticValidationError as e:
        return _error(400, "Invalid export request", _pydantic_details(e))

    try:
        result = await orchestrator.export(export_request)
    except ValidationError as e:
        logger.info(f"Rejected {fmt} export: {e.errors}", extra={"request_id": request_id, "export_format": fmt})
        return _error(400, str(e), e.errors)
    except RendererError as e:
        logger.error(f"{fmt} export failed: {e}", extra={"request_id": request_id, "export_format": fmt})
        return _error(500, f"Failed to generate {fmt} export", e.to_dict())

    logger.info(
        f"Export served: {result.file_name}",
        extra={"request_id": request_id, "export_format": fmt},
    )
    return _artifact_response(result, result.file_name, request_id)
