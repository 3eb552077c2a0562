"""Readiness diagnostics for the cluster, the indices and the embedder.

Each ``check_*`` method returns a passing or warning ``CheckResult`` or
raises the specific error for its failure. ``run_all`` runs every check,
turns raised errors into failed results, and returns the whole report.
Nothing here creates or modifies indices or documents.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from elasticsearch import AsyncElasticsearch

from clinical_search.config import Settings, settings as default_settings
from clinical_search.errors import (
    ClinicalSearchError,
    ClusterUnhealthyError,
    ConfigurationError,
    IndexNotReadyError,
    ValidationError,
)
from clinical_search.models.health import CheckResult, HealthReport
from clinical_search.models.index_schemas import IndexSchema, build_registry
from clinical_search.services.cluster import response_body
from clinical_search.services.embedding_service import Embedder
from clinical_search.services.retry import call_with_retry
from clinical_search.services.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

PROBE_TEXT = "chest pain, shortness of breath"


class HealthChecker:
    def __init__(
        self,
        client: AsyncElasticsearch | None,
        schema_manager: SchemaManager | None,
        embedder: Embedder | None,
        registry: dict[str, IndexSchema] | None = None,
        settings: Settings | None = None,
    ) -> None:
        # client, schema_manager and embedder are None when configuration is
        # incomplete; the checks that need them then fail with ConfigurationError.
        self._client = client
        self._schema_manager = schema_manager
        self._embedder = embedder
        self._settings = settings or default_settings
        self.registry = registry or build_registry(self._settings.embedding_dimensions)

    def _require_cluster(self) -> tuple[AsyncElasticsearch, SchemaManager]:
        if self._client is None or self._schema_manager is None:
            raise ConfigurationError(
                [n for n in self._settings.missing_required() if "ELASTICSEARCH" in n]
                or ["ELASTICSEARCH_URL"]
            )
        return self._client, self._schema_manager

    def check_environment(self) -> CheckResult:
        missing = self._settings.missing_required()
        if missing:
            raise ConfigurationError(missing)
        return CheckResult(
            name="environment",
            status="pass",
            message="All required configuration present",
        )

    async def check_connection(self) -> CheckResult:
        client, _ = self._require_cluster()
        info = response_body(
            await call_with_retry("cluster info", client.info, settings=self._settings)
        )
        version = info.get("version", {}).get("number")
        if not version:
            raise ClinicalSearchError("Cluster returned no version info")
        return CheckResult(
            name="connection",
            status="pass",
            message=f"Connected to Elasticsearch {version}",
            details={"version": version, "cluster_name": info.get("cluster_name")},
        )

    async def check_cluster_health(self) -> CheckResult:
        client, _ = self._require_cluster()
        health = response_body(
            await call_with_retry(
                "cluster health", client.cluster.health, settings=self._settings
            )
        )
        status = health["status"]
        details = {"status": status, "number_of_nodes": health.get("number_of_nodes")}
        if status == "red":
            raise ClusterUnhealthyError(status)
        if status == "yellow":
            return CheckResult(
                name="cluster_health",
                status="warn",
                message="Cluster health is yellow (degraded)",
                details=details,
            )
        return CheckResult(
            name="cluster_health",
            status="pass",
            message=f"Cluster health is {status}",
            details=details,
        )

    async def check_index(self, name: str, require_data: bool = False) -> CheckResult:
        """Existence, mapping and document count of one index."""
        client, schema_manager = self._require_cluster()
        await schema_manager.verify_index(name)
        resp = await call_with_retry(
            f"count {name}",
            lambda: client.count(index=name),
            settings=self._settings,
        )
        count = int(resp["count"])
        details = {"exists": True, "mapping_ok": True, "count": count}
        if count == 0:
            if require_data:
                raise IndexNotReadyError(name, "index is empty")
            return CheckResult(
                name=f"index:{name}",
                status="warn",
                message="index exists, mapping OK, count=0, WARNING: no data",
                details=details,
            )
        return CheckResult(
            name=f"index:{name}",
            status="pass",
            message=f"index exists, mapping OK, count={count}",
            details=details,
        )

    async def check_embedder(self) -> CheckResult:
        if self._embedder is None:
            raise ConfigurationError(["EMBEDDING_API_KEY"])
        vector = await self._embedder.embed_query(PROBE_TEXT)
        dims = self._settings.embedding_dimensions
        if len(vector) != dims:
            raise ValidationError(
                f"Embedding service returned {len(vector)} dimensions, expected {dims}"
            )
        return CheckResult(
            name="embedder",
            status="pass",
            message=f"Embedding service returned a {dims}-dim vector",
            details={"dims": dims},
        )

    # --- Aggregation ---

    async def _collect(
        self,
        report: HealthReport,
        name: str,
        check: Callable[[], Awaitable[CheckResult]],
    ) -> None:
        try:
            result = await check()
        except ClinicalSearchError as e:
            logger.warning("Check %s failed: %s", name, e.message)
            details: dict = {"code": e.code}
            if isinstance(e, ConfigurationError):
                details["missing"] = e.missing
            result = CheckResult(
                name=name, status="fail", message=e.message, details=details
            )
        except Exception as e:
            logger.warning("Check %s failed", name, exc_info=True)
            result = CheckResult(
                name=name,
                status="fail",
                message=str(e) or type(e).__name__,
                details={"code": type(e).__name__},
            )
        report.checks.append(result)

    async def _environment(self) -> CheckResult:
        return self.check_environment()

    async def check_configuration(
        self, report: HealthReport | None = None
    ) -> HealthReport:
        if report is None:
            report = HealthReport()
        await self._collect(report, "environment", self._environment)
        return report

    async def check_cluster(self, report: HealthReport | None = None) -> HealthReport:
        """Reachability and health color of the cluster."""
        if report is None:
            report = HealthReport()
        await self._collect(report, "connection", self.check_connection)
        await self._collect(report, "cluster_health", self.check_cluster_health)
        return report

    async def check_indices(
        self, require_data: bool = True, report: HealthReport | None = None
    ) -> HealthReport:
        """Check every registered index; data is required only where expected."""
        if report is None:
            report = HealthReport()
        for name, schema in self.registry.items():
            await self._collect(
                report,
                f"index:{name}",
                lambda name=name, schema=schema: self.check_index(
                    name, require_data=require_data and schema.expects_data
                ),
            )
        return report

    async def run_all(self, require_data: bool = False) -> HealthReport:
        """Run every check and collect all results without short-circuiting."""
        report = await self.check_configuration()
        await self.check_cluster(report)
        await self.check_indices(require_data=require_data, report=report)
        await self._collect(report, "embedder", self.check_embedder)
        logger.info(
            "Readiness: %d passed, %d warnings, %d failed",
            report.counts["pass"],
            report.counts["warn"],
            report.counts["fail"],
        )
        return report
