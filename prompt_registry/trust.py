"""Source allow-listing for remote registry URLs."""

from typing import Iterable
from urllib.parse import urlsplit


class TrustPolicy:
    """Decides whether a URL may be fetched."""

    def __init__(self, trusted_domains: Iterable[str], require_https: bool = True):
        """
        Initialize the policy.

        Args:
            trusted_domains: Domains that may be fetched from. Subdomains of a
                             listed domain are trusted too.
            require_https: Reject any scheme other than https.
        """
        self.trusted_domains = [d.strip().lower().rstrip(".") for d in trusted_domains if d]
        self.require_https = require_https

    def is_trusted(self, url: str) -> bool:
        """Check whether ``url`` passes the scheme and domain checks."""
        try:
            parts = urlsplit(url)
            hostname = parts.hostname
        except (TypeError, ValueError, AttributeError):
            return False

        if not hostname:
            return False

        if self.require_https and parts.scheme.lower() != "https":
            return False
        if parts.scheme.lower() not in ("http", "https"):
            return False

        hostname = hostname.rstrip(".")
        return any(
            hostname == domain or hostname.endswith(f".{domain}")
            for domain in self.trusted_domains
        )

    def hostname(self, url: str) -> str:
        """Best-effort hostname of ``url`` for error messages."""
        try:
            return urlsplit(url).hostname or url
        except (TypeError, ValueError, AttributeError):
            return str(url)
