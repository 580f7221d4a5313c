"""
Pydantic v2 schemas for the DeepScan REST API.

Re-exports every public schema so consumers can do::

    from deepscan.api.schemas import DeepScanTrigger, SubdomainFinderRequest  # etc.
"""

from deepscan.api.schemas.deep_scan import (
    DeepScanStatusResponse,
    DeepScanTrigger,
    DeepScanTriggerResponse,
)
from deepscan.api.schemas.discovery import (
    DiscoverySummaryOut,
    SubdomainFinderRequest,
    SubdomainFinderResponse,
    SubdomainRecordOut,
)

__all__: list[str] = [
    # deep scan
    "DeepScanTrigger",
    "DeepScanTriggerResponse",
    "DeepScanStatusResponse",
    # discovery
    "SubdomainFinderRequest",
    "SubdomainFinderResponse",
    "SubdomainRecordOut",
    "DiscoverySummaryOut",
]
