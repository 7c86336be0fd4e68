"""Background task definitions: cron job handlers.

- ``reap_idle_sessions`` (60 s): stop analysis sessions nobody is watching
- ``calculate_metrics`` (15 s): count entities for Prometheus gauges
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from digitflow.engine.client import DigitFlowEngine
    from digitflow.metrics.collector import EngineMetrics

logger = logging.getLogger(__name__)

CALCULATE_METRICS_PERIOD = 15


async def task_reap_idle_sessions(engine: DigitFlowEngine) -> None:
    """Stop and forget analysis sessions idle past the configured timeout."""
    try:
        await engine.analysis_manager.reap_idle()
    except Exception:
        logger.exception("reap_idle_sessions failed")


async def task_calculate_metrics(engine: DigitFlowEngine, metrics: EngineMetrics) -> None:
    """Count entities and push to Prometheus gauges."""
    try:
        key_count = await engine.access_key_service.count_access_keys()
        metrics.set_access_key_count(key_count)
        metrics.set_analysis_session_count(len(engine.analysis_manager))
    except Exception:
        logger.exception("calculate_metrics failed")
