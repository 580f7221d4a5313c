"""
DeepScan ORM models package.

Re-exports every model class so that consumers can import directly from
``deepscan.models`` instead of reaching into individual submodules::

    from deepscan.models import DeepScanRequest, ScanStatus, Profile
"""

from deepscan.models.scan_request import PAYMENT_COMPLETED, DeepScanRequest, ScanStatus
from deepscan.models.profile import FREE_PLAN, Profile
