"""Consul version catalog lookups and version selection.

Two different candidate sets pass through these helpers and must not be
mixed up: the global HCP catalog used when creating a cluster, and the
cluster-scoped upgrade targets returned by ``listConsulUpgradeVersions``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum

import requests

from .ama_models import AMAVersion
from .errors import TransportError

logger = logging.getLogger(__name__)

HCP_CONSUL_API_VERSION = "2021-02-04"
PLATFORM_TYPE = "HCS"
USER_AGENT = "hcs-operator"
CATALOG_TIMEOUT_SECONDS = 30


class VersionStatus(str, Enum):
    """Availability of a Consul version on HCS."""

    AVAILABLE = "AVAILABLE"
    RECOMMENDED = "RECOMMENDED"
    PREVIEW = "PREVIEW"


@dataclass(frozen=True)
class Version:
    """A Consul version and its availability status."""

    version: str
    status: str

    def __str__(self) -> str:
        return f"{self.version} ({self.status})" if self.status else self.version


def versions_url(hcp_api_domain: str) -> str:
    domain = hcp_api_domain.removeprefix("https://").rstrip("/")
    return (
        f"https://{domain}/consul/{HCP_CONSUL_API_VERSION}/versions"
        f"?platform_type={PLATFORM_TYPE}"
    )


def fetch_available_versions(hcp_api_domain: str) -> list[Version]:
    """Fetch the versions HCS currently offers for new clusters.

    This is a blocking call; async callers run it in an executor.

    Args:
        hcp_api_domain: Host of the HCP API, with or without scheme.

    Returns:
        Versions in catalog response order.

    Raises:
        TransportError: If the catalog cannot be reached or parsed.
    """
    url = versions_url(hcp_api_domain)
    try:
        response = requests.get(
            url, headers={"User-Agent": USER_AGENT}, timeout=CATALOG_TIMEOUT_SECONDS
        )
        response.raise_for_status()
        body = response.json()
    except requests.RequestException as e:
        raise TransportError(
            f"unable to retrieve available Consul versions from HCP: {e}", url=url
        ) from e
    except ValueError as e:
        raise TransportError(
            f"unable to deserialize versions JSON from HCP Consul service: {e}", url=url
        ) from e

    versions = [
        Version(version=str(item.get("version", "")), status=str(item.get("status", "")))
        for item in body.get("versions") or []
    ]
    logger.debug("Fetched Consul version catalog", extra={"count": len(versions)})
    return versions


def recommended_version(versions: Sequence[Version]) -> str:
    """Return the RECOMMENDED version.

    Without a RECOMMENDED entry the last entry in response order wins. This
    depends on catalog ordering and is kept as-is for compatibility.
    """
    default_version = ""
    for v in versions:
        default_version = v.version
        if v.status == VersionStatus.RECOMMENDED.value:
            return default_version
    return default_version


def normalize_version(version: str) -> str:
    """Ensure exactly one leading ``v``."""
    return "v" + version.removeprefix("v")


def is_valid_version(version: str, versions: Iterable[Version]) -> bool:
    """Exact membership test; callers normalize both sides first."""
    return any(version == v.version for v in versions)


def version_status(status: str) -> str:
    """Map a custom-action status onto the catalog vocabulary, else empty."""
    try:
        return VersionStatus(status).value
    except ValueError:
        return ""


def from_ama_versions(versions: Iterable[AMAVersion] | None) -> list[Version]:
    return [Version(version=v.version, status=version_status(v.status)) for v in versions or []]
