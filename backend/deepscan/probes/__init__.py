"""
Probe primitives -- single-shot network checks against one host.

Every probe is a coroutine that either returns a payload, returns ``None``
("nothing here"), or raises.  The executor in
:mod:`deepscan.engine.executor` turns those three cases into
:class:`ProbeOutcome` values; :func:`first_success` chains fallbacks.
"""

from deepscan.probes.base import Probe, ProbeOutcome, ProbeStatus, first_success

__all__: list[str] = [
    "Probe",
    "ProbeOutcome",
    "ProbeStatus",
    "first_success",
]
