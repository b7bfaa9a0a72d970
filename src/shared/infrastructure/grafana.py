"""
Grafana OTLP Metrics Exporter
==============================

Pushes oracle usage and pipeline stage metrics to Grafana Cloud via OTLP.

Metrics exported:
- oracle_latency_ms: latency of one structured-output call
- oracle_tokens_total: prompt + completion tokens of one call
- pipeline_stage_total: one data point per finished stage, labelled by outcome
"""

import base64
import time
from typing import Dict, List, Optional

import httpx

from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _attributes(values: Dict[str, str]) -> List[dict]:
    return [{"key": k, "value": {"stringValue": str(v)}} for k, v in values.items()]


def _gauge(name: str, unit: str, description: str, value: int, attributes: List[dict]) -> dict:
    return {
        "name": name,
        "unit": unit,
        "description": description,
        "gauge": {
            "dataPoints": [{
                "asInt": value,
                "timeUnixNano": time.time_ns(),
                "attributes": attributes,
            }]
        },
    }


class GrafanaOTLPExporter:
    """
    Export metrics to Grafana Cloud via the OTLP HTTP endpoint.

    Export failures are logged and reported as False; they never raise into
    the pipeline.
    """

    def __init__(
        self,
        host: Optional[str],
        api_key: Optional[str],
        instance_id: Optional[str],
        service_name: str = "inquiry-analysis",
        service_version: str = "1.0.0",
        environment: str = "development",
        timeout: float = 10.0
    ):
        self._enabled = bool(host and api_key and instance_id)
        self._instance_id = instance_id
        self._timeout = timeout
        self._resource = _attributes({
            "service.name": service_name,
            "service.version": service_version,
            "deployment.environment": environment,
        })

        if self._enabled:
            auth_pair = f"{instance_id}:{api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            self._url = host if "/otlp/v1/metrics" in host else f"{host.rstrip('/')}/otlp/v1/metrics"
            logger.info("Grafana OTLP exporter initialized", extra={"host": host})
        else:
            logger.info("Grafana OTLP exporter not configured - metrics will not be exported")

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    async def export_oracle_call(
        self,
        model: str,
        schema: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ) -> bool:
        """
        Export latency and token usage of one oracle call.

        Args:
            model: Model name
            schema: Structured-output schema name
            prompt_tokens: Prompt tokens used
            completion_tokens: Completion tokens generated
            latency_ms: Request latency in milliseconds

        Returns:
            True if export succeeded, False otherwise
        """
        attributes = _attributes({"model": model, "schema": schema})
        return await self._push([
            _gauge("oracle_latency_ms", "ms", "Oracle call latency", latency_ms, attributes),
            _gauge(
                "oracle_tokens_total", "1", "Tokens used by an oracle call",
                prompt_tokens + completion_tokens, attributes
            ),
        ])

    async def export_stage(self, stage: str, outcome: str, latency_ms: int) -> bool:
        """Export one finished pipeline stage."""
        attributes = _attributes({"stage": stage, "outcome": outcome})
        return await self._push([
            _gauge("pipeline_stage_total", "1", "Finished pipeline stages", 1, attributes),
            _gauge("pipeline_stage_latency_ms", "ms", "Pipeline stage latency", latency_ms, attributes),
        ])

    async def _push(self, metrics: List[dict]) -> bool:
        if not self._enabled:
            return False

        payload = {
            "resourceMetrics": [{
                "resource": {"attributes": self._resource},
                "scopeMetrics": [{"metrics": metrics}],
            }]
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id),
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(self._url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            logger.error("Error exporting metrics to Grafana", extra={"error": str(e)})
            return False

        if response.status_code in (200, 202):
            return True

        logger.warning(
            "Failed to export metrics to Grafana",
            extra={"status_code": response.status_code, "response": response.text[:500]}
        )
        return False


def init_grafana_exporter(
    host: Optional[str],
    api_key: Optional[str],
    instance_id: Optional[str],
    **kwargs
) -> GrafanaOTLPExporter:
    """Build the exporter; it stays disabled unless all credentials are set."""
    return GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id,
        **kwargs
    )
