"""
Metrics Endpoint

Prometheus-compatible metrics for observability.
"""
from fastapi import APIRouter
from fastapi.responses import Response
from loguru import logger

from lead_intelligence.utils.metrics import metrics

router = APIRouter(tags=["Metrics"])


@router.get("/metrics")
async def prometheus_metrics():
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text exposition format for scraping.
    Includes:
    - Intelligence requests by outcome (cache hit, recomputed, failed)
    - Analysis duration histogram
    - Insights and predictions emitted
    - Field decryption failures and subject lock contention

    Content-Type: text/plain; version=0.0.4; charset=utf-8
    """
    try:
        output = metrics.export()

        return Response(
            content=output,
            media_type="text/plain; version=0.0.4; charset=utf-8"
        )

    except Exception as e:
        logger.opt(exception=True).error(f"Failed to export metrics: {e}")
        return Response(
            content=f"# Error exporting metrics: {e}\n",
            media_type="text/plain",
            status_code=500
        )
