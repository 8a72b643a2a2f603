"""
API routes for the conservation system.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from conservation import __version__
from conservation.api.auth import get_current_agent_id, get_services, verify_cron_secret
from conservation.api.schemas import (
    AlertIdRequest,
    AlertStatusResponse,
    CreateAlertRequest,
    CreateAlertResponse,
    HealthResponse,
    OutreachResponse,
    ResolveAlertRequest,
    SweepResponse,
)
from conservation.exceptions import AlertStateError, ConservationError, RecordNotFoundError
from conservation.pipeline.models import AlertSource, AlertStatus
from conservation.services import Services
from conservation.utils.time_utils import utcnow


logger = logging.getLogger(__name__)
router = APIRouter()


def _http_error(error: ConservationError) -> HTTPException:
    """Map a domain error to its HTTP status."""
    if isinstance(error, RecordNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, AlertStateError):
        return HTTPException(status_code=422, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


def _require_alert_id(request: AlertIdRequest) -> str:
    alert_id = (request.alert_id or "").strip()
    if not alert_id:
        raise HTTPException(status_code=400, detail="alertId is required")
    return alert_id


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(services: Services = Depends(get_services)):
    """
    Check the health status of the API and its dependencies.
    """
    mongodb_connected = False
    try:
        mongodb_connected = services.repository.ping()
    except Exception as e:
        logger.warning(f"MongoDB connection check failed: {e}")

    fireworks_configured = bool(services.settings.fireworks_api_key)

    return HealthResponse(
        status="healthy" if mongodb_connected and fireworks_configured else "degraded",
        version=__version__,
        mongodb_connected=mongodb_connected,
        fireworks_configured=fireworks_configured,
        timestamp=utcnow(),
    )


@router.post(
    "/api/conservation/create",
    response_model=CreateAlertResponse,
    tags=["Conservation"],
    summary="Create a conservation alert",
    description="Submit pasted carrier text; returns the alert and whether it matched a client",
)
async def create_alert(
    request: CreateAlertRequest,
    agent_id: str = Depends(get_current_agent_id),
    services: Services = Depends(get_services),
):
    """
    Run the alert pipeline on pasted carrier text.
    """
    raw_text = (request.raw_text or "").strip()
    if not raw_text:
        raise HTTPException(status_code=400, detail="rawText is required")

    try:
        result = services.orchestrator.create_alert(agent_id, raw_text, AlertSource.PASTE)
    except Exception as e:
        logger.exception(f"Error creating conservation alert: {e}")
        raise HTTPException(status_code=500, detail="Failed to create conservation alert")

    return CreateAlertResponse(
        alert_id=result.alert_id,
        matched=result.matched,
        alert=result.alert,
    )


@router.post(
    "/api/conservation/outreach",
    response_model=OutreachResponse,
    tags=["Conservation"],
    summary="Send outreach now",
)
async def send_outreach(
    request: AlertIdRequest,
    agent_id: str = Depends(get_current_agent_id),
    services: Services = Depends(get_services),
):
    """
    Send the initial message immediately, skipping the grace period.
    """
    alert_id = _require_alert_id(request)
    try:
        dispatch = services.actions.send_outreach(agent_id, alert_id)
    except ConservationError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception(f"Error sending outreach for {alert_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to send outreach")

    return OutreachResponse(push_sent=dispatch.push_sent, sms_sent=dispatch.sms_sent)


@router.post(
    "/api/conservation/cancel-outreach",
    response_model=AlertStatusResponse,
    tags=["Conservation"],
    summary="Cancel scheduled outreach",
)
async def cancel_outreach(
    request: AlertIdRequest,
    agent_id: str = Depends(get_current_agent_id),
    services: Services = Depends(get_services),
):
    """
    Cancel the automatic send while the grace period is still running.
    """
    alert_id = _require_alert_id(request)
    try:
        alert = services.actions.cancel_outreach(agent_id, alert_id)
    except ConservationError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception(f"Error cancelling outreach for {alert_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to cancel outreach")

    return AlertStatusResponse(alert_id=alert_id, status=alert.status)


@router.patch(
    "/api/conservation/update",
    response_model=AlertStatusResponse,
    tags=["Conservation"],
    summary="Resolve an alert",
)
async def resolve_alert(
    request: ResolveAlertRequest,
    agent_id: str = Depends(get_current_agent_id),
    services: Services = Depends(get_services),
):
    """
    Mark an alert saved or lost, with optional notes.
    """
    alert_id = _require_alert_id(request)
    if request.status not in (AlertStatus.SAVED.value, AlertStatus.LOST.value):
        raise HTTPException(status_code=400, detail="status must be 'saved' or 'lost'")

    try:
        alert = services.actions.resolve_alert(
            agent_id, alert_id, AlertStatus(request.status), notes=request.notes
        )
    except ConservationError as e:
        raise _http_error(e)
    except Exception as e:
        logger.exception(f"Error resolving alert {alert_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update alert")

    return AlertStatusResponse(alert_id=alert_id, status=alert.status)


@router.post(
    "/api/webhooks/resend-inbound",
    tags=["Webhooks"],
    summary="Inbound email webhook",
)
async def resend_inbound(
    payload: Dict[str, Any] = Body(...),
    services: Services = Depends(get_services),
):
    """
    Turn a forwarded carrier email into a conservation alert.
    """
    try:
        return services.inbound.process(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception(f"Error processing inbound email: {e}")
        raise HTTPException(status_code=500, detail="Internal error")


@router.get(
    "/api/cron/conservation-outreach",
    response_model=SweepResponse,
    tags=["Cron"],
    summary="Run the outreach sweep",
    dependencies=[Depends(verify_cron_secret)],
)
async def conservation_outreach(services: Services = Depends(get_services)):
    """
    Fire scheduled outreach and send due drip follow-ups across all agents.
    """
    try:
        result = services.scheduler.run_sweep()
    except Exception as e:
        logger.exception(f"Conservation outreach sweep failed: {e}")
        raise HTTPException(status_code=500, detail="Internal error")

    return SweepResponse(
        outreach_fired=result.outreach_fired,
        drips_sent=result.drips_sent,
        skipped=result.skipped,
        errors=result.errors,
    )
