"""
Discovery technique registry -- import all techniques for auto-registration.

Importing this package causes every concrete technique class to be loaded
and, through the :func:`@TechniqueRegistry.register <TechniqueRegistry.register>`
decorator, registered in the central technique registry.  The discovery
engine only needs to ``import deepscan.modules`` to have all five available.
"""

from deepscan.modules.registry import TechniqueRegistry
from deepscan.modules.portscan import PortScanTechnique
from deepscan.modules.dns_enum import DnsEnumTechnique
from deepscan.modules.crtsh import CertificateTransparencyTechnique
from deepscan.modules.wordlist import WordlistTechnique
from deepscan.modules.sslsan import SanAnalysisTechnique

__all__: list[str] = [
    "TechniqueRegistry",
    "PortScanTechnique",
    "DnsEnumTechnique",
    "CertificateTransparencyTechnique",
    "WordlistTechnique",
    "SanAnalysisTechnique",
]
