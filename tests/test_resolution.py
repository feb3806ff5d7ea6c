"""Tests for default resolution of cluster operations."""

from __future__ import annotations

from typing import Any

import pytest

from hcs_operator.catalog import HCS_PUBLISHER, PlanDefaults
from hcs_operator.config import Config
from hcs_operator.errors import ValidationFailedError
from hcs_operator.models import ClusterSpec
from hcs_operator.resolution import (
    CreateContext,
    resolve_create,
    resolve_identity,
    validate_audit_logging,
)
from hcs_operator.resource_manager import ManagedApplication, ResourceGroupInfo
from hcs_operator.versions import Version

SUB = "12345678-1234-1234-1234-123456789012"
RG_ID = f"/subscriptions/{SUB}/resourceGroups/rg-consul"


def create_context(config: Config, **spec_fields: Any) -> CreateContext:
    spec = ClusterSpec.model_validate(
        {
            "resourceGroupName": "rg-consul",
            "managedApplicationName": "consul-prod",
            "email": "ops@example.com",
            "clusterMode": "Development",
            **spec_fields,
        }
    )
    return CreateContext(
        spec=spec,
        config=config,
        resource_group=ResourceGroupInfo(id=RG_ID, location="westeurope"),
        plan_defaults=PlanDefaults(name="on-demand-v2", version="0.0.42"),
        available_versions=[Version("v1.8.4", "AVAILABLE"), Version("v1.9.0", "RECOMMENDED")],
    )


class TestResolveCreate:
    """Tests for create-time defaults."""

    def test_defaults(self, config: Config) -> None:
        resolved = resolve_create(create_context(config))

        assert resolved.cluster_name == "consul-prod"
        assert resolved.datacenter == "consul-prod"
        assert resolved.cluster_mode == "DEVELOPMENT"
        assert resolved.location == "westeurope"
        assert resolved.plan_name == "on-demand-v2"
        assert resolved.plan_version == "0.0.42"
        assert resolved.plan_product == config.marketplace_product_name
        assert resolved.plan_publisher == HCS_PUBLISHER
        assert resolved.consul_version == "v1.9.0"
        assert resolved.managed_resource_group_id == f"{RG_ID}-mrg-consul-prod"
        assert resolved.tags == {}

    def test_datacenter_follows_application_name_not_cluster_name(self, config: Config) -> None:
        resolved = resolve_create(create_context(config, clusterName="consul-main"))

        assert resolved.cluster_name == "consul-main"
        assert resolved.datacenter == "consul-prod"

    def test_overrides(self, config: Config) -> None:
        resolved = resolve_create(
            create_context(
                config,
                consulDatacenter="dc-west",
                location="East US",
                planName="annual",
                minConsulVersion="1.8.4",
                managedResourceGroupName="mrg-consul",
                tags={"cost": 42},
            )
        )

        assert resolved.datacenter == "dc-west"
        assert resolved.location == "eastus"
        assert resolved.plan_name == "annual"
        assert resolved.consul_version == "v1.8.4"
        assert resolved.managed_resource_group_id == f"/subscriptions/{SUB}/resourceGroups/mrg-consul"
        assert resolved.tags == {"cost": "42"}

    def test_arm_parameters(self, config: Config) -> None:
        resolved = resolve_create(
            create_context(
                config,
                consulExternalEndpoint=True,
                auditLoggingEnabled=True,
                auditLogStorageContainerUrl="https://sa.blob.core.windows.net/audit",
            )
        )

        parameters = resolved.to_arm_parameters()

        assert parameters["clusterMode"] == {"value": "DEVELOPMENT"}
        assert parameters["consulDataCenter"] == {"value": "consul-prod"}
        assert parameters["externalEndpoint"] == {"value": "enabled"}
        assert parameters["initialConsulVersion"] == {"value": "v1.9.0"}
        assert parameters["sourceChannel"] == {"value": config.source_channel}
        assert parameters["auditLoggingEnabled"] == {"value": "enabled"}
        assert parameters["auditLogStorageContainerURL"] == {
            "value": "https://sa.blob.core.windows.net/audit"
        }
        assert "federationToken" not in parameters

    def test_federation_token_passed_through(self, config: Config) -> None:
        resolved = resolve_create(create_context(config, consulFederationToken="jwt-token"))

        assert resolved.to_arm_parameters()["federationToken"] == {"value": "jwt-token"}


class TestResolveIdentity:
    """Tests for locating an existing cluster from its managed application."""

    def test_identity(self) -> None:
        app = ManagedApplication(
            id=f"{RG_ID}/providers/Microsoft.Solutions/applications/consul-prod",
            name="consul-prod",
            managed_resource_group_id=f"{RG_ID}-mrg-consul-prod",
        )

        identity = resolve_identity(app)

        assert identity.resource_group_name == "rg-consul"
        assert identity.cluster_name == "consul-prod"
        assert identity.managed_resource_group_name == "rg-consul-mrg-consul-prod"

    def test_cluster_name_override(self) -> None:
        app = ManagedApplication(
            id=f"{RG_ID}/providers/Microsoft.Solutions/applications/consul-prod",
            name="consul-prod",
            managed_resource_group_id=f"{RG_ID}-mrg-consul-prod",
        )

        assert resolve_identity(app, "consul-main").cluster_name == "consul-main"

    def test_malformed_managed_resource_group(self) -> None:
        app = ManagedApplication(
            id=f"{RG_ID}/providers/Microsoft.Solutions/applications/consul-prod",
            name="consul-prod",
            managed_resource_group_id="not-an-id",
        )

        with pytest.raises(ValidationFailedError):
            resolve_identity(app)


class TestAuditLogging:
    def test_enabled_requires_url(self) -> None:
        with pytest.raises(ValidationFailedError) as exc_info:
            validate_audit_logging(True, None)

        assert "audit_log_storage_container_url must be set" in str(exc_info.value)

    def test_valid_combinations(self) -> None:
        validate_audit_logging(True, "https://sa/audit")
        validate_audit_logging(False, None)
        validate_audit_logging(False, "https://sa/audit")
