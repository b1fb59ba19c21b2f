"""Feed source helpers: sync-type detection, URL checks and sync intervals."""

import ipaddress
import logging
from urllib.parse import urlparse

from ..storage.models import SyncType

logger = logging.getLogger(__name__)

VALID_AUTO_SYNC_INTERVALS = (0, 5, 15, 30, 60, 120, 360, 720, 1440)

_DOMAINS = {
    SyncType.ICLOUD: ("icloud.com",),
    SyncType.GOOGLE: ("google.com",),
}


def _host_matches(host: str, domains: tuple) -> bool:
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)


def detect_sync_type(url: str) -> SyncType:
    """Guess the feed provider from its host name."""
    host = (urlparse(url.strip()).hostname or "").lower()
    for sync_type, domains in _DOMAINS.items():
        if _host_matches(host, domains):
            return sync_type
    return SyncType.CUSTOM


def is_valid_calendar_url(url: str, sync_type: SyncType) -> bool:
    """Check that a feed URL is fetchable and plausible for ``sync_type``.

    Only webcal/https (and plain http for custom feeds) are accepted.
    Loopback, private and link-local IP literals are rejected.
    """
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False

    allowed = ("webcal", "https", "http") if sync_type == SyncType.CUSTOM else ("webcal", "https")
    if parsed.scheme.lower() not in allowed:
        return False

    host = (parsed.hostname or "").lower()
    if not host or host == "localhost":
        return False

    try:
        ip = ipaddress.ip_address(host)
    except ValueError:
        # Not an IP literal
        pass
    else:
        if ip.is_private or ip.is_loopback or ip.is_link_local:
            logger.warning(f"Rejected calendar URL pointing at internal address: {host}")
            return False

    domains = _DOMAINS.get(SyncType(sync_type))
    return domains is None or _host_matches(host, domains)


def validate_auto_sync_interval(minutes: int) -> int:
    if minutes not in VALID_AUTO_SYNC_INTERVALS:
        raise ValueError(
            f"Invalid auto sync interval {minutes}; "
            f"choose one of {', '.join(str(m) for m in VALID_AUTO_SYNC_INTERVALS)}"
        )
    return minutes

