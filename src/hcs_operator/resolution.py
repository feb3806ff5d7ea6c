"""Default resolution for cluster operations.

Defaults are expressed as ordered override rules, evaluated once at the start
of an operation. Each rule sees the inputs and every value resolved before
it, so chains such as datacenter <- cluster name <- managed application name
are explicit. The result is a frozen value handed to every later step.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .catalog import HCS_PUBLISHER, PlanDefaults, normalize_location
from .config import Config
from .errors import ValidationFailedError
from .ids import managed_resource_group_id, parse_resource_group_name
from .models import ClusterSpec
from .resource_manager import ManagedApplication, ResourceGroupInfo
from .validators import flatten_tags
from .versions import Version, normalize_version, recommended_version

AUDIT_URL_REQUIRED_MESSAGE = (
    "audit_log_storage_container_url must be set when audit_logging_enabled is true"
)


def validate_audit_logging(enabled: bool, storage_container_url: str | None) -> None:
    """Reject audit logging without a destination.

    Raises:
        ValidationFailedError: If enabled without a storage container URL.
    """
    if enabled and not storage_container_url:
        raise ValidationFailedError(AUDIT_URL_REQUIRED_MESSAGE)


def _enabled(value: bool) -> str:
    return "enabled" if value else "disabled"


# =============================================================================
# Create
# =============================================================================


@dataclass(frozen=True)
class CreateContext:
    """Everything known before a cluster is created."""

    spec: ClusterSpec
    config: Config
    resource_group: ResourceGroupInfo
    plan_defaults: PlanDefaults
    available_versions: list[Version]


CreateRule = tuple[str, Callable[[CreateContext, dict[str, Any]], Any]]


def _location(ctx: CreateContext, _: dict[str, Any]) -> str:
    if ctx.spec.location:
        return normalize_location(ctx.spec.location)
    return ctx.resource_group.location


def _consul_version(ctx: CreateContext, _: dict[str, Any]) -> str:
    if ctx.spec.min_consul_version:
        return normalize_version(ctx.spec.min_consul_version)
    return recommended_version(ctx.available_versions)


def _managed_resource_group_id(ctx: CreateContext, _: dict[str, Any]) -> str:
    return managed_resource_group_id(
        resource_group_id=ctx.resource_group.id,
        app_name=ctx.spec.managed_application_name,
        subscription_id=ctx.config.subscription_id,
        managed_resource_group_name=ctx.spec.managed_resource_group_name,
    )


CREATE_RULES: tuple[CreateRule, ...] = (
    ("managed_application_name", lambda ctx, _: ctx.spec.managed_application_name),
    ("resource_group_name", lambda ctx, _: ctx.spec.resource_group_name),
    ("cluster_name", lambda ctx, r: ctx.spec.cluster_name or r["managed_application_name"]),
    ("datacenter", lambda ctx, r: ctx.spec.consul_datacenter or r["managed_application_name"]),
    ("cluster_mode", lambda ctx, _: ctx.spec.cluster_mode.value),
    ("vnet_cidr", lambda ctx, _: ctx.spec.vnet_cidr),
    ("email", lambda ctx, _: ctx.spec.email),
    ("location", _location),
    ("plan_name", lambda ctx, _: ctx.spec.plan_name or ctx.plan_defaults.name),
    ("plan_version", lambda ctx, _: ctx.plan_defaults.version),
    ("plan_product", lambda ctx, _: ctx.config.marketplace_product_name),
    ("plan_publisher", lambda ctx, _: HCS_PUBLISHER),
    ("consul_version", _consul_version),
    ("managed_resource_group_id", _managed_resource_group_id),
    ("external_endpoint", lambda ctx, _: ctx.spec.consul_external_endpoint),
    ("audit_logging_enabled", lambda ctx, _: ctx.spec.audit_logging_enabled),
    (
        "audit_log_storage_container_url",
        lambda ctx, _: ctx.spec.audit_log_storage_container_url or "",
    ),
    ("federation_token", lambda ctx, _: ctx.spec.consul_federation_token or ""),
    ("source_channel", lambda ctx, _: ctx.config.source_channel),
    ("tags", lambda ctx, _: flatten_tags(ctx.spec.tags)),
)


@dataclass(frozen=True)
class ResolvedClusterConfig:
    """Fully defaulted inputs for creating one cluster."""

    managed_application_name: str
    resource_group_name: str
    cluster_name: str
    datacenter: str
    cluster_mode: str
    vnet_cidr: str
    email: str
    location: str
    plan_name: str
    plan_version: str
    plan_product: str
    plan_publisher: str
    consul_version: str
    managed_resource_group_id: str
    external_endpoint: bool
    audit_logging_enabled: bool
    audit_log_storage_container_url: str
    federation_token: str
    source_channel: str
    tags: dict[str, str]

    def to_arm_parameters(self) -> dict[str, dict[str, str]]:
        """Managed application parameters in ARM ``{"name": {"value": ...}}`` form."""
        values = {
            "clusterMode": self.cluster_mode,
            "clusterName": self.cluster_name,
            "consulDataCenter": self.datacenter,
            "consulVnetCidr": self.vnet_cidr,
            "email": self.email,
            "externalEndpoint": _enabled(self.external_endpoint),
            "initialConsulVersion": self.consul_version,
            "sourceChannel": self.source_channel,
            "auditLoggingEnabled": _enabled(self.audit_logging_enabled),
            "auditLogStorageContainerURL": self.audit_log_storage_container_url,
        }
        if self.federation_token:
            values["federationToken"] = self.federation_token
        return {name: {"value": value} for name, value in values.items()}


def resolve_create(ctx: CreateContext) -> ResolvedClusterConfig:
    resolved: dict[str, Any] = {}
    for name, rule in CREATE_RULES:
        resolved[name] = rule(ctx, resolved)
    return ResolvedClusterConfig(**resolved)


# =============================================================================
# Existing clusters
# =============================================================================


@dataclass(frozen=True)
class ResolvedClusterIdentity:
    """Where an existing cluster lives, derived from its managed application."""

    managed_application_id: str
    managed_application_name: str
    resource_group_name: str
    cluster_name: str
    managed_resource_group_id: str
    managed_resource_group_name: str


IdentityRule = tuple[str, Callable[[ManagedApplication, str | None, dict[str, Any]], Any]]

IDENTITY_RULES: tuple[IdentityRule, ...] = (
    ("managed_application_id", lambda app, _, __: app.id),
    ("managed_application_name", lambda app, _, __: app.name),
    ("resource_group_name", lambda app, _, __: parse_resource_group_name(app.id)),
    ("cluster_name", lambda _, override, r: override or r["managed_application_name"]),
    ("managed_resource_group_id", lambda app, _, __: app.managed_resource_group_id),
    (
        "managed_resource_group_name",
        lambda _, __, r: parse_resource_group_name(r["managed_resource_group_id"]),
    ),
)


def resolve_identity(
    app: ManagedApplication, cluster_name_override: str | None = None
) -> ResolvedClusterIdentity:
    """Resolve the identity of an existing cluster.

    Raises:
        ValidationFailedError: If an id on the managed application is malformed.
    """
    resolved: dict[str, Any] = {}
    for name, rule in IDENTITY_RULES:
        resolved[name] = rule(app, cluster_name_override, resolved)
    return ResolvedClusterIdentity(**resolved)
