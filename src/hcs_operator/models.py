"""Pydantic models for desired and observed cluster state.

Desired-state models are parsed from YAML and validated at the boundary so
a bad spec fails before any remote call. Observed-state models are what the
reconcilers hand back to the caller and what the state store persists.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .validators import (
    TagValue,
    validate_cidr,
    validate_in,
    validate_not_empty,
    validate_resource_group_name,
    validate_semver,
    validate_slug,
    validate_tags,
)

DEFAULT_VNET_CIDR = "172.25.16.0/24"
PLAN_NAMES = ["on-demand", "on-demand-v2", "annual"]


class ClusterMode(str, Enum):
    """Cluster topology: one server, or at least three."""

    DEVELOPMENT = "DEVELOPMENT"
    PRODUCTION = "PRODUCTION"


def _raise_on(problems: list[str]) -> None:
    if problems:
        raise ValueError("; ".join(problems))


# =============================================================================
# Desired State
# =============================================================================


class ClusterRef(BaseModel):
    """Identifies the managed application owning a sub-resource."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    resource_group_name: str = Field(alias="resourceGroupName")
    managed_application_name: str = Field(alias="managedApplicationName")

    @field_validator("resource_group_name")
    @classmethod
    def validate_resource_group(cls, v: str) -> str:
        _raise_on(validate_resource_group_name(v))
        return v

    @field_validator("managed_application_name")
    @classmethod
    def validate_app_name(cls, v: str) -> str:
        _raise_on(validate_slug(v))
        return v


class ClusterSpec(ClusterRef):
    """Desired state of a managed Consul cluster."""

    email: str
    cluster_mode: ClusterMode = Field(alias="clusterMode")

    cluster_name: str | None = Field(None, alias="clusterName")
    vnet_cidr: str = Field(DEFAULT_VNET_CIDR, alias="vnetCidr")
    min_consul_version: str | None = Field(None, alias="minConsulVersion")
    consul_datacenter: str | None = Field(None, alias="consulDatacenter")
    consul_federation_token: str | None = Field(None, alias="consulFederationToken")
    consul_external_endpoint: bool = Field(False, alias="consulExternalEndpoint")
    location: str | None = None
    plan_name: str | None = Field(None, alias="planName")
    managed_resource_group_name: str | None = Field(None, alias="managedResourceGroupName")
    tags: dict[str, TagValue] | None = None
    audit_logging_enabled: bool = Field(False, alias="auditLoggingEnabled")
    audit_log_storage_container_url: str | None = Field(None, alias="auditLogStorageContainerUrl")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        _raise_on(validate_not_empty(v))
        return v

    @field_validator("cluster_mode", mode="before")
    @classmethod
    def normalize_cluster_mode(cls, v: Any) -> Any:
        if isinstance(v, str):
            _raise_on(validate_in(v, ["Development", "Production"], ignore_case=True))
            return v.upper()
        return v

    @field_validator("cluster_name", "consul_datacenter")
    @classmethod
    def validate_slugs(cls, v: str | None) -> str | None:
        if v is not None:
            _raise_on(validate_slug(v))
        return v

    @field_validator("vnet_cidr")
    @classmethod
    def validate_vnet_cidr(cls, v: str) -> str:
        _raise_on(validate_cidr(v))
        return v

    @field_validator("min_consul_version")
    @classmethod
    def validate_min_version(cls, v: str | None) -> str | None:
        if v is not None:
            _raise_on(validate_semver(v))
        return v

    @field_validator("plan_name")
    @classmethod
    def validate_plan(cls, v: str | None) -> str | None:
        if v is not None:
            _raise_on(validate_in(v, PLAN_NAMES))
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tag_map(cls, v: Any) -> Any:
        if isinstance(v, dict):
            _raise_on(validate_tags(v))
        return v


class SnapshotSpec(ClusterRef):
    """Desired snapshot of a cluster."""

    snapshot_name: str = Field(alias="snapshotName")

    @field_validator("snapshot_name")
    @classmethod
    def validate_snapshot_name(cls, v: str) -> str:
        _raise_on(validate_not_empty(v))
        return v


SPEC_KINDS: dict[str, type[BaseModel]] = {
    "Cluster": ClusterSpec,
    "Snapshot": SnapshotSpec,
    "RootToken": ClusterRef,
    "FederationToken": ClusterRef,
}


def get_spec_class(kind: str) -> type[BaseModel]:
    """Get the spec class for a document kind.

    Raises:
        ValueError: If the kind is not recognized.
    """
    spec_class = SPEC_KINDS.get(kind)
    if spec_class is None:
        raise ValueError(f"Unknown spec kind '{kind}'. Valid kinds: {sorted(SPEC_KINDS)}")
    return spec_class


# =============================================================================
# Observed State
# =============================================================================


class ClusterState(BaseModel):
    """Tracked and observed state of a cluster.

    ``id`` and ``cluster_name`` are the only fields needed to find the
    cluster again. The root token pair is only ever known from the create
    call and is carried forward unchanged afterwards.
    """

    id: str
    cluster_name: str

    resource_group_name: str = ""
    managed_application_name: str = ""
    managed_application_id: str = ""
    email: str = ""
    cluster_mode: ClusterMode = ClusterMode.PRODUCTION
    vnet_cidr: str = ""
    vnet_id: str = ""
    vnet_name: str = ""
    vnet_resource_group_name: str = ""
    consul_version: str = ""
    min_consul_version: str | None = None
    consul_datacenter: str = ""
    consul_federation_token: str = ""
    consul_external_endpoint: bool = False
    location: str = ""
    plan_name: str = ""
    managed_resource_group_name: str = ""
    tags: dict[str, str] = Field(default_factory=dict)
    state: str = ""
    storage_account_name: str = ""
    storage_account_resource_group: str = ""
    blob_container_name: str = ""
    consul_automatic_upgrades: bool = False
    consul_snapshot_interval: str = ""
    consul_snapshot_retention: str = ""
    consul_config_file: str = ""
    consul_ca_file: str = ""
    consul_connect: bool = False
    consul_external_endpoint_url: str = ""
    consul_private_endpoint_url: str = ""
    consul_cluster_id: str = ""
    audit_logging_enabled: bool = False
    audit_log_storage_container_url: str = ""
    managed_identity_name: str = ""

    consul_root_token_accessor_id: str | None = None
    consul_root_token_secret_id: str | None = Field(None, repr=False)


class RootTokenState(BaseModel):
    """A freshly minted root token. The secret is never retrievable again."""

    id: str
    resource_group_name: str
    managed_application_name: str
    accessor_id: str
    secret_id: str = Field(repr=False)
    kubernetes_secret: str = Field(repr=False)


class SnapshotState(BaseModel):
    """Observed snapshot. ``restored_at`` is None when never restored."""

    id: str
    resource_group_name: str
    managed_application_name: str
    snapshot_name: str
    state: str = ""
    size: int = 0
    requested_at: str = ""
    finished_at: str = ""
    restored_at: str | None = None


class FederationTokenState(BaseModel):
    """A federation token minted by a primary cluster."""

    id: str
    resource_group_name: str
    managed_application_name: str
    token: str = Field("", repr=False)
