"""
Curated subdomain prefixes used by the port scan, the DNS brute force and the
wordlist technique.
"""

from __future__ import annotations

# Most frequently seen prefixes; drives optimized mode.
ESSENTIAL_SUBDOMAINS: list[str] = [
    # Core infrastructure
    "www", "mail", "api", "admin", "app", "portal", "dashboard", "cdn", "static",
    # Security & compliance
    "audit", "security", "sec", "compliance", "monitor", "log", "siem",
    # Development
    "dev", "test", "staging", "beta", "demo", "sandbox",
    # Services
    "support", "help", "docs", "blog", "news", "forum", "chat",
    # Technical
    "ftp", "smtp", "pop", "imap", "vpn", "proxy", "gateway",
    # Business
    "shop", "store", "pay", "billing", "crm", "erp",
]

# Prefixes that commonly front administrative or security tooling.
SECURITY_PATTERNS: list[str] = [
    "audit", "security", "compliance", "admin", "management", "control",
    "dashboard", "portal", "console", "monitor", "soc", "siem",
]

# Words in TXT records that hint at a same-named subdomain.
TXT_KEYWORD_HINTS: list[str] = [
    "audit", "security", "admin", "api", "portal", "dashboard", "app",
]

# Full list for exhaustive mode.
COMMON_SUBDOMAINS: list[str] = [
    "www", "mail", "ftp", "localhost", "webmail", "smtp", "pop", "ns1", "webdisk", "ns2",
    "cpanel", "whm", "autodiscover", "autoconfig", "m", "imap", "test", "ns", "blog",
    "pop3", "dev", "www2", "admin", "forum", "news", "vpn", "ns3", "mail2", "new",
    "mysql", "old", "lists", "support", "mobile", "mx", "static", "docs", "beta",
    "shop", "sql", "secure", "demo", "cp", "calendar", "wiki", "web", "media",
    "email", "images", "img", "www1", "intranet", "portal", "video", "sip",
    "dns2", "api", "cdn", "stats", "dns1", "ns4", "www3", "dns", "search",
    "staging", "server", "mx1", "chat", "wap", "my", "svn", "mail1", "sites",
    "proxy", "ads", "host", "crm", "cms", "backup", "mx2", "lyncdiscover",
    "info", "apps", "download", "remote", "db", "forums", "store", "relay",
    "files", "newsletter", "app", "live", "owa", "en", "start", "sms", "office",
    "exchange", "ipv4", "mail3", "help", "blogs", "helpdesk", "web1", "home",
    "library", "ftp2", "ntp", "monitor", "login", "service", "correo", "www4",
    "moodle", "mailgate", "video2", "game", "ns0", "testing", "sandbox", "job",
    "events", "dialin", "ml", "fb", "videos", "music", "a", "partners",
    "mailhost", "policy", "diskstation", "emailing", "lib", "chatserver",
    "catalog", "pp", "preview", "fr", "wiki2", "archive", "mm", "timeline",
    "ftp1", "ssl", "web2", "testing2", "redmine", "checkout", "de",
    # Security and audit focused
    "audit", "security", "sec", "compliance", "risk", "governance", "grc",
    "pentest", "vulnerability", "vuln", "scan", "scanner", "assessment",
    "forensics", "incident", "response", "soc", "operations", "monitoring",
    "log", "siem", "splunk", "elastic", "kibana", "grafana", "prometheus",
    "alert", "alerting", "notification", "report", "reporting", "dashboard",
    "metrics", "analytics", "business", "bi", "intelligence", "data",
    "warehouse", "etl", "pipeline", "stream", "kafka", "rabbit", "queue",
]


def unique(prefixes: list[str]) -> list[str]:
    """Drop repeated prefixes, keeping first occurrences in order."""
    return list(dict.fromkeys(prefixes))


def security_variants(patterns: list[str] = SECURITY_PATTERNS) -> list[str]:
    """Expand each security pattern into its composite forms.

    ``admin`` yields ``admin-portal``, ``admin-app``, ``admin-api``,
    ``app-admin`` and ``portal-admin``.
    """
    variants: list[str] = []
    for pattern in patterns:
        variants.extend([
            f"{pattern}-portal",
            f"{pattern}-app",
            f"{pattern}-api",
            f"app-{pattern}",
            f"portal-{pattern}",
        ])
    return unique(variants)


def port_scan_prefixes(exhaustive: bool, limit: int) -> list[str]:
    """Prioritised prefixes for the port scan, at most *limit* of them."""
    if exhaustive:
        prefixes = ESSENTIAL_SUBDOMAINS + SECURITY_PATTERNS + COMMON_SUBDOMAINS
    else:
        prefixes = ESSENTIAL_SUBDOMAINS[:20] + SECURITY_PATTERNS
    return unique(prefixes)[:limit]


def brute_force_prefixes(exhaustive: bool) -> list[str]:
    """Prefixes resolved by the DNS brute force."""
    if exhaustive:
        return unique(COMMON_SUBDOMAINS + security_variants())
    return unique(ESSENTIAL_SUBDOMAINS + SECURITY_PATTERNS)


def wordlist_prefixes(exhaustive: bool) -> list[str]:
    """Prefixes handed to the HTTP verification pass."""
    if exhaustive:
        return unique(COMMON_SUBDOMAINS + security_variants())
    return list(ESSENTIAL_SUBDOMAINS)
