"""HCS plan defaults and supported regions.

Both documents are static JSON files in the cloud-hcs-meta repository.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import requests
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import TransportError

logger = logging.getLogger(__name__)

HCS_PUBLISHER = "hashicorp-4665790"
PLAN_DEFAULTS_PATH = "/ama-plans/defaults.json"
REGIONS_PATH = "/regions/regions.json"
CATALOG_TIMEOUT_SECONDS = 30


class PlanDefaults(BaseModel):
    """Current default Azure Marketplace plan for HCS."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    name: str
    version: str
    ama_api_version: str = ""


class SupportedRegion(BaseModel):
    model_config = {"extra": "ignore", "populate_by_name": True}

    short_name: str = Field(alias="short")
    friendly_name: str = Field("", alias="friendly")


class _RegionsDocument(BaseModel):
    model_config = {"extra": "ignore"}

    regions: list[SupportedRegion] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _match_key_case_insensitively(cls, data: Any) -> Any:
        # "Regions", "regions" and any other casing name the same list
        if not isinstance(data, dict):
            return data
        for key, value in data.items():
            if isinstance(key, str) and key.lower() == "regions":
                return {"regions": value}
        return {}


def _get_json(url: str, what: str) -> object:
    try:
        response = requests.get(url, timeout=CATALOG_TIMEOUT_SECONDS)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        raise TransportError(f"unable to retrieve {what}: {e}", url=url) from e
    except ValueError as e:
        raise TransportError(f"unable to deserialize {what}: {e}", url=url) from e


def fetch_plan_defaults(meta_url: str) -> PlanDefaults:
    """Fetch the current HCS plan defaults.

    Raises:
        TransportError: If the document cannot be fetched or parsed.
    """
    url = meta_url.rstrip("/") + PLAN_DEFAULTS_PATH
    body = _get_json(url, "HCS plan defaults")
    try:
        return PlanDefaults.model_validate(body)
    except ValidationError as e:
        raise TransportError(f"unable to deserialize HCS plan defaults: {e}", url=url) from e


def fetch_supported_regions(meta_url: str) -> list[SupportedRegion]:
    """Fetch the regions HCS can be deployed to.

    Raises:
        TransportError: If the document cannot be fetched or parsed.
    """
    url = meta_url.rstrip("/") + REGIONS_PATH
    body = _get_json(url, "supported HCS regions")
    try:
        return _RegionsDocument.model_validate(body).regions
    except ValidationError as e:
        raise TransportError(f"unable to deserialize supported HCS regions: {e}", url=url) from e


def region_is_supported(region: str, supported: Sequence[SupportedRegion] | None) -> bool:
    """Check a region against the catalog.

    An empty or unavailable catalog places no restriction on the region.
    """
    if not supported:
        return True
    return any(s.short_name == region for s in supported)


def normalize_location(location: str) -> str:
    """Turn ``West Europe`` into ``westeurope``."""
    return location.lower().replace(" ", "")
