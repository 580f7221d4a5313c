"""
Deep Scan Coordinator.

Drives one paid deep-scan request through its lifecycle:

1. Load the request and make sure it is ``processing``.
2. Run the light scan, the database-configuration scan, subdomain discovery
   and (only when a credential was supplied) the authenticated probe
   concurrently, each under its own timeout and all under a global
   deadline.  Modules still running at the deadline are cancelled.
3. Compute the composite score and risk tally over the module reports.
4. Persist the aggregate report and mark the request ``completed``.
5. Spawn the PDF report and the completion notification as detached
   background tasks.  Their failures are logged and never touch the
   request status.

A scan whose modules all fail still completes, with score 0.  Only a
failure of the orchestration itself marks the request ``failed``, with a
partial report in which every module "did not complete".
"""

from __future__ import annotations

import asyncio
import functools
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deepscan.config import Settings, get_settings
from deepscan.core.errors import error_kind
from deepscan.core.logging import get_logger
from deepscan.core.security import extract_domain
from deepscan.engine import notifications
from deepscan.engine.collaborators import CollaboratorClient
from deepscan.engine.discovery import DiscoveryEngine
from deepscan.engine.executor import ProbeExecutor
from deepscan.engine.results import (
    AggregateReport,
    DiscoveryReport,
    ModuleErrorKind,
    ModuleName,
    ModuleReport,
    RiskTally,
)
from deepscan.engine.scoring import aggregate_score, subdomain_score
from deepscan.models.scan_request import DeepScanRequest, ScanStatus
from deepscan.modules.auth_probe import run_auth_probe
from deepscan.modules.base import OPTIMIZED
from deepscan.modules.registry import TechniqueRegistry
from deepscan.probes.web import build_client, head_status
from deepscan.reports.renderer import render_report

logger = get_logger(__name__)

# Hosts checked for accessibility after discovery.
_MAX_TESTED_SUBDOMAINS = 10
_ACCESSIBILITY_TIMEOUT = 5.0
_ACCESSIBILITY_MAX_REDIRECTS = 5

_MODULE_ERROR_KINDS = {kind.value for kind in ModuleErrorKind}

ModuleJob = Callable[[], Awaitable[Any]]


def planned_modules(request: DeepScanRequest) -> list[ModuleName]:
    """Modules *request* runs, in report order."""
    modules = [
        ModuleName.SECURITY_HEADERS,
        ModuleName.API_KEYS_AND_LEAKS,
        ModuleName.DATABASE_CONFIG,
        ModuleName.SUBDOMAINS,
    ]
    if request.jwt_token:
        modules.append(ModuleName.AUTHENTICATED)
    return modules


def partial_report(request: DeepScanRequest, now: Optional[datetime] = None) -> AggregateReport:
    """Report stored with a ``failed`` request: every planned module "did not complete"."""
    now = now or datetime.now(timezone.utc)
    started_at = request.started_at or now
    if started_at.tzinfo is None:
        # SQLite hands timestamps back without their zone.
        started_at = started_at.replace(tzinfo=timezone.utc)
    return AggregateReport(
        modules=[
            ModuleReport.failed(name, ModuleErrorKind.NOT_COMPLETED.value, "scan did not complete")
            for name in planned_modules(request)
        ],
        score=0,
        tally=RiskTally(),
        started_at=started_at,
        completed_at=now,
        duration_ms=max(int((now - started_at).total_seconds() * 1000), 0),
    )


class DeepScanCoordinator:
    """Coordinates a complete deep-scan lifecycle.

    The coordinator is instantiated per worker task and driven by
    :meth:`run`.  Background side effects outlive :meth:`run`; call
    :meth:`drain` before closing the event loop.

    Usage::

        coordinator = DeepScanCoordinator(session_factory)
        await coordinator.run(request_id)
        await coordinator.drain()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        collaborators: Optional[CollaboratorClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._session_factory = session_factory
        self._settings = settings or get_settings()
        self._collaborators = collaborators or CollaboratorClient(self._settings)
        self._background: set[asyncio.Task[None]] = set()

    # -- Public entry point ---------------------------------------------------

    async def run(self, request_id: str) -> Optional[AggregateReport]:
        """Execute the deep scan for *request_id*.

        Returns:
            The aggregate report (partial for a failed scan), or ``None``
            when the request does not exist or is already terminal.
        """
        async with self._session_factory() as session:
            request: DeepScanRequest | None = await session.get(DeepScanRequest, uuid.UUID(request_id))
            if request is None:
                logger.error(
                    "Deep-scan request not found",
                    extra={"action": "scan_not_found", "target": request_id},
                )
                return None
            if request.status.is_terminal:
                logger.warning(
                    "Deep-scan request already %s; not rerunning",
                    request.status.value,
                    extra={"action": "scan_skipped", "target": request_id},
                )
                return None

            # ── Mark as PROCESSING ─────────────────────────────────────────
            if request.status is not ScanStatus.PROCESSING or request.started_at is None:
                request.status = ScanStatus.PROCESSING
                request.started_at = datetime.now(timezone.utc)
                await session.commit()

            logger.info(
                "Deep scan started",
                extra={"action": "scan_start", "target": request.url},
            )

            try:
                report = await self._execute(request)
            except Exception as exc:
                logger.exception(
                    "Deep scan failed: %s",
                    exc,
                    extra={"action": "scan_failed", "target": request.url},
                )
                return await self._mark_failed(session, request, exc)

            request.status = ScanStatus.COMPLETED
            request.scan_results = report.to_dict()
            request.completed_at = report.completed_at
            await session.commit()

            logger.info(
                "Deep scan completed with score %d",
                report.score,
                extra={"action": "scan_complete", "target": request.url},
            )
            self._spawn(self._after_completion(request_id, request.url, request.user_email, report.to_dict()))
            return report

    async def drain(self) -> None:
        """Wait for every spawned side effect to finish."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -- Orchestration ----------------------------------------------------------

    async def _execute(self, request: DeepScanRequest) -> AggregateReport:
        started_at = request.started_at or datetime.now(timezone.utc)
        start = time.monotonic()
        settings = self._settings
        domain = extract_domain(request.url)

        jobs: list[tuple[tuple[ModuleName, ...], ModuleJob, float]] = [
            (
                (ModuleName.SECURITY_HEADERS, ModuleName.API_KEYS_AND_LEAKS),
                functools.partial(self._collaborators.light_scan, request.url),
                settings.LIGHT_SCAN_TIMEOUT_SECONDS,
            ),
            (
                (ModuleName.DATABASE_CONFIG,),
                functools.partial(self._collaborators.database_scan, domain),
                settings.DB_SCAN_TIMEOUT_SECONDS,
            ),
            (
                (ModuleName.SUBDOMAINS,),
                functools.partial(self._subdomain_analysis, domain, request.techniques),
                settings.SUBDOMAIN_SCAN_TIMEOUT_SECONDS,
            ),
        ]
        if request.jwt_token:
            jobs.append((
                (ModuleName.AUTHENTICATED,),
                functools.partial(run_auth_probe, request.url, request.jwt_token),
                settings.AUTH_SCAN_TIMEOUT_SECONDS,
            ))

        tasks = {
            asyncio.create_task(self._run_module(names, job, timeout)): names
            for names, job, timeout in jobs
        }
        done, pending = await asyncio.wait(tasks, timeout=settings.SCAN_DEADLINE_SECONDS)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        reports: list[ModuleReport] = []
        for task, names in tasks.items():
            if task in done:
                reports.extend(task.result())
            else:
                logger.warning(
                    "Modules %s cancelled at the global deadline",
                    [name.value for name in names],
                    extra={"action": "module_deadline", "target": domain},
                )
                reports.extend(
                    ModuleReport.failed(
                        name,
                        ModuleErrorKind.TIMEOUT.value,
                        f"cancelled at the {settings.SCAN_DEADLINE_SECONDS:.0f}s scan deadline",
                        duration_ms=int((time.monotonic() - start) * 1000),
                    )
                    for name in names
                )

        order = {name: index for index, name in enumerate(planned_modules(request))}
        reports.sort(key=lambda report: order[report.name])

        score, tally = aggregate_score(reports)
        return AggregateReport(
            modules=reports,
            score=score,
            tally=tally,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    @staticmethod
    async def _run_module(
        names: Sequence[ModuleName],
        job: ModuleJob,
        timeout: float,
    ) -> list[ModuleReport]:
        """Run one module job under *timeout*; never raises.

        A job that serves several modules returns one result per name.
        """
        start = time.monotonic()
        try:
            value = await asyncio.wait_for(job(), timeout=timeout)
        except asyncio.TimeoutError:
            kind, message = ModuleErrorKind.TIMEOUT.value, f"did not finish within {timeout:.0f}s"
        except Exception as exc:  # noqa: BLE001
            kind = error_kind(exc)
            if kind not in _MODULE_ERROR_KINDS:
                kind = ModuleErrorKind.UNEXPECTED.value
            message = str(exc) or exc.__class__.__name__
        else:
            duration_ms = int((time.monotonic() - start) * 1000)
            results = value if len(names) > 1 else (value,)
            return [
                ModuleReport.succeeded(name, result, duration_ms)
                for name, result in zip(names, results)
            ]

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.warning(
            "Module %s failed (%s): %s",
            "+".join(name.value for name in names),
            kind,
            message,
            extra={"action": "module_failed", "target": names[0].value},
        )
        return [ModuleReport.failed(name, kind, message, duration_ms) for name in names]

    # -- Subdomain module -------------------------------------------------------

    async def _subdomain_analysis(
        self,
        domain: str,
        techniques: Optional[list[str]] = None,
    ) -> dict[str, Any]:
        """Discover subdomains, then test the first few for public accessibility.

        Accessibility follows redirects, so an http-to-https or apex-to-www
        hop still counts when the final response is 2xx.
        """
        engine = DiscoveryEngine(OPTIMIZED, TechniqueRegistry.get_all(techniques))
        discovery: DiscoveryReport = await engine.discover(domain)

        hosts = [record.hostname for record in discovery.subdomains][:_MAX_TESTED_SUBDOMAINS]
        tested: list[dict[str, Any]] = []
        if hosts:
            executor = ProbeExecutor(len(hosts), name=f"accessibility:{domain}")
            async with build_client(
                _ACCESSIBILITY_TIMEOUT,
                self._settings.USER_AGENT,
                max_redirects=_ACCESSIBILITY_MAX_REDIRECTS,
            ) as client:
                outcomes = await executor.run(
                    [functools.partial(head_status, client, f"https://{host}") for host in hosts],
                    timeout=_ACCESSIBILITY_TIMEOUT,
                )
            for host, outcome in zip(hosts, outcomes):
                if outcome.ok:
                    status = outcome.payload.get("status_code") or 0
                    tested.append({"subdomain": host, "status": status, "accessible": 200 <= status < 300})
                else:
                    tested.append({"subdomain": host, "status": 0, "accessible": False, "error": outcome.reason})

        accessible = sum(1 for entry in tested if entry["accessible"])
        return {
            "total_found": discovery.total_found,
            "tested_subdomains": tested,
            "accessible_count": accessible,
            "score": subdomain_score(discovery.total_found, accessible),
            "discovery": discovery.to_dict(),
        }

    # -- Failure path -----------------------------------------------------------

    async def _mark_failed(
        self,
        session: AsyncSession,
        request: DeepScanRequest,
        exc: BaseException,
    ) -> AggregateReport:
        """Persist a terminal ``failed`` state with a partial report."""
        await session.rollback()
        await session.refresh(request)
        now = datetime.now(timezone.utc)
        message = str(exc) or exc.__class__.__name__

        partial = partial_report(request, now)
        request.status = ScanStatus.FAILED
        request.scan_results = partial.to_dict()
        request.error_message = message
        request.completed_at = now
        await session.commit()

        self._spawn(self._guarded(
            "notify_failure",
            notifications.notify_failure(str(request.id), request.user_email, message),
        ))
        return partial

    # -- Side effects -----------------------------------------------------------

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _guarded(self, name: str, coro: Awaitable[Any]) -> Any:
        """Await *coro* under the side-effect timeout; log and swallow failures."""
        try:
            return await asyncio.wait_for(coro, timeout=self._settings.SIDE_EFFECT_TIMEOUT_SECONDS)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Side effect %s failed: %s",
                name,
                exc,
                extra={"action": "side_effect_failed", "target": name},
            )
            return None

    async def _after_completion(
        self,
        request_id: str,
        url: str,
        recipient: Optional[str],
        report: dict[str, Any],
    ) -> None:
        pdf_url = await self._guarded(
            "render_report",
            render_report(uuid.UUID(request_id), url, report, self._session_factory),
        )
        await self._guarded(
            "notify_completion",
            notifications.notify_completion(request_id, recipient, report, pdf_url),
        )
