"""
Composite deep-scan score and risk tally.

The composite score is a weighted mean of the per-module scores, computed
over the modules that produced a usable score and renormalised by the sum of
their weights.  Modules that errored, timed out, or produced no score (e.g.
no database detected) are left out entirely.

============================ ======= ======================================
Module                       Weight  Module score
============================ ======= ======================================
``api_keys_and_leaks``         0.40  reported by the light scan
``database_config``            0.30  protected / total tables x 100
``security_headers``           0.20  present / (present + missing) x 100
``subdomains``                 0.10  (1 - accessible / tested) x 100
============================ ======= ======================================

The risk tally counts findings by normalised severity:

* missing security headers count as ``low``;
* leaks count by their own severity (``warning`` means ``high``, ``info``
  means ``low``);
* publicly accessible database tables count as ``critical``;
* authenticated-access findings count by their own severity.

Both functions are pure.
"""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional

from deepscan.engine.results import ModuleName, ModuleReport, RiskTally

MODULE_WEIGHTS: dict[ModuleName, float] = {
    ModuleName.API_KEYS_AND_LEAKS: 0.4,
    ModuleName.DATABASE_CONFIG: 0.3,
    ModuleName.SECURITY_HEADERS: 0.2,
    ModuleName.SUBDOMAINS: 0.1,
}

_SEVERITY_ALIASES: dict[str, str] = {
    "critical": "critical",
    "high": "high",
    "warning": "high",
    "medium": "medium",
    "low": "low",
    "info": "low",
}


def normalize_severity(severity: Optional[str]) -> str:
    """Map any severity label onto ``critical``/``high``/``medium``/``low``.

    Unknown labels are treated as ``low``.
    """
    return _SEVERITY_ALIASES.get((severity or "").strip().lower(), "low")


def round_half_up(value: float) -> int:
    """Round a non-negative value to the nearest int, halves going up."""
    return int(math.floor(value + 0.5))


def composite_score(
    reports: Iterable[ModuleReport],
    weights: Optional[dict[ModuleName, float]] = None,
) -> int:
    """Weighted, renormalised mean of the usable module scores.

    Args:
        reports: Module reports of one deep scan.
        weights: Override for :data:`MODULE_WEIGHTS`.

    Returns:
        An integer in ``[0, 100]``; ``0`` when no module is usable.
    """
    weights = MODULE_WEIGHTS if weights is None else weights
    weighted_sum = 0.0
    weight_total = 0.0

    for report in reports:
        weight = weights.get(report.name, 0.0)
        if weight <= 0 or not report.usable:
            continue
        module_score = min(max(float(report.result["score"]), 0.0), 100.0)  # type: ignore[index]
        weighted_sum += module_score * weight
        weight_total += weight

    if weight_total == 0:
        return 0
    return round_half_up(min(max(weighted_sum / weight_total, 0.0), 100.0))


def risk_tally(reports: Iterable[ModuleReport]) -> RiskTally:
    """Count findings of all successful modules by normalised severity."""
    tally = RiskTally()
    for report in reports:
        if report.result is None:
            continue
        result: dict[str, Any] = report.result

        if report.name is ModuleName.SECURITY_HEADERS:
            tally.add("low", len(result.get("missing") or []))
        elif report.name is ModuleName.API_KEYS_AND_LEAKS:
            for leak in result.get("leaks") or []:
                tally.add(normalize_severity(leak.get("severity")))
        elif report.name is ModuleName.DATABASE_CONFIG:
            tally.add("critical", int(result.get("public_tables") or 0))
        elif report.name is ModuleName.AUTHENTICATED:
            for finding in result.get("findings") or []:
                tally.add(normalize_severity(finding.get("severity")))
    return tally


def aggregate_score(reports: Iterable[ModuleReport]) -> tuple[int, RiskTally]:
    """Return ``(composite score, risk tally)`` for a set of module reports."""
    reports = list(reports)
    return composite_score(reports), risk_tally(reports)


def subdomain_score(total_found: int, accessible_count: int) -> int:
    """Exposure score of the subdomain module.

    ``(1 - accessible / found) * 100`` over every discovered host, not only
    the sampled ones; ``100`` when nothing was found.
    """
    if total_found <= 0:
        return 100
    exposure = min(accessible_count / total_found, 1.0)
    return round_half_up((1 - exposure) * 100)
