"""IP geolocation over HTTP."""

import ipaddress
import logging

import httpx

logger = logging.getLogger(__name__)

IPV4_MAPPED_PREFIX = "::ffff:"


def clean_ip(ip: str | None) -> str | None:
    """Strip the IPv4-mapped IPv6 prefix."""
    if not ip:
        return None
    ip = ip.strip()
    if ip.lower().startswith(IPV4_MAPPED_PREFIX):
        ip = ip[len(IPV4_MAPPED_PREFIX):]
    return ip or None


def is_public_ip(ip: str) -> bool:
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return address.is_global


def format_location(city: str | None, country: str | None) -> str | None:
    """``"City, Country"``, or ``"Country"`` when the city is unknown."""
    if not country:
        return None
    return f"{city}, {country}" if city else country


class GeoLocator:
    """Looks up "City, Country" for an IP using a JSON geolocation service.

    The URL template receives the address as ``{ip}`` and must answer with
    ``country`` and ``city`` fields. Lookups never raise.
    """

    def __init__(
        self,
        url_template: str,
        timeout_seconds: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._url_template = url_template
        self._timeout = timeout_seconds
        self._client = client

    async def lookup(self, ip: str | None) -> str | None:
        address = clean_ip(ip)
        if not address or not is_public_ip(address):
            return None

        url = self._url_template.format(ip=address)
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Geo lookup failed for {address}: {e}")
            return None

        if data.get("status") == "fail":
            return None
        return format_location(data.get("city"), data.get("country"))
