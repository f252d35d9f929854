import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from jiralert.api.deps import ClientFactory, get_client_factory, get_config, get_renderer
from jiralert.config import Settings, get_settings
from jiralert.core.errors import JiralertError
from jiralert.core.reconcile import Receiver
from jiralert.core.template import Renderer
from jiralert.metrics import requests_total
from jiralert.schemas import JiralertConfig, Notification, NotifyResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["alerts"])

SUPPORTED_WEBHOOK_VERSION = "4"


@router.post(
    "/alert",
    response_model=NotifyResponse,
    summary="Receive Alertmanager notification",
    description=(
        "Accepts an Alertmanager webhook (v4) and creates, updates, reopens or "
        "resolves the Jira issues of the receiver it names. Answers 503 when "
        "the failure is worth a redelivery and 500 when it is not."
    ),
)
def receive_alert(
    payload: Notification,
    config: JiralertConfig = Depends(get_config),
    renderer: Renderer = Depends(get_renderer),
    client_factory: ClientFactory = Depends(get_client_factory),
    settings: Settings = Depends(get_settings),
):
    """Handle one Alertmanager notification.

    Flow:
    1. Check the webhook version
    2. Look up the receiver configuration by the payload's receiver name
    3. Reconcile the notification with Jira
    4. Map failures to 503 (retry) or 500 (give up)

    Runs synchronously in FastAPI's threadpool; Jira calls block.
    """
    if payload.version != SUPPORTED_WEBHOOK_VERSION:
        requests_total.labels(receiver=payload.receiver, code="400").inc()
        raise HTTPException(
            status_code=400,
            detail=(
                f"Unsupported webhook version {payload.version!r}, "
                f"expected {SUPPORTED_WEBHOOK_VERSION!r}"
            ),
        )

    rc = config.receiver_by_name(payload.receiver)
    if rc is None:
        requests_total.labels(receiver=payload.receiver, code="404").inc()
        raise HTTPException(
            status_code=404, detail=f"Receiver missing: {payload.receiver}"
        )

    logger.debug(
        f"Handling notification for receiver {rc.name} "
        f"(group_key={payload.group_key}, alerts={len(payload.alerts)})"
    )

    client = client_factory(rc)
    try:
        processed = Receiver(rc, renderer, client).notify(payload, settings.hash_jira_label)
    except JiralertError as e:
        code = 503 if e.retry else 500
        logger.error(f"Notification for receiver {rc.name} failed (retry={e.retry}): {e}")
        requests_total.labels(receiver=rc.name, code=str(code)).inc()
        return JSONResponse(status_code=code, content={"detail": str(e), "retry": e.retry})
    finally:
        client.close()

    requests_total.labels(receiver=rc.name, code="200").inc()
    return NotifyResponse(status="ok", receiver=rc.name, notifications=processed)
