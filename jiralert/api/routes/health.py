from fastapi import APIRouter, Depends
from fastapi.responses import Response

from jiralert.api.deps import get_config
from jiralert.metrics import get_metrics
from jiralert.schemas import JiralertConfig

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check() -> dict:
    """Basic health check."""
    return {"status": "ok", "service": "jiralert"}


@router.get("/config", summary="Show the loaded receiver configuration")
def show_config(config: JiralertConfig = Depends(get_config)) -> Response:
    """Effective configuration after defaults were applied, secrets masked."""
    return Response(content=config.to_yaml(), media_type="application/yaml")


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    body, content_type = get_metrics()
    return Response(content=body, media_type=content_type)
