"""Wire models for the HCS custom-action API.

One request model per action so every payload is typed; requests are
serialized by alias, responses parsed leniently (unknown fields ignored).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class AMAModel(BaseModel):
    """Base model for custom-action payloads."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    def to_body(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class AMABoolean(str, Enum):
    """Boolean as the custom-action API spells it."""

    TRUE = "TRUE"
    FALSE = "FALSE"

    @classmethod
    def of(cls, value: bool) -> AMABoolean:
        return cls.TRUE if value else cls.FALSE


class OperationState(str, Enum):
    """Coarse, one-directional operation lifecycle."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"


# =============================================================================
# Requests
# =============================================================================


class ActionRequest(AMAModel):
    """Fields every custom action carries."""

    resource_group: str = Field(alias="resourceGroup")
    subscription_id: str = Field(alias="subscriptionId")


class CreateTokenRequest(ActionRequest):
    pass


class GetConfigRequest(ActionRequest):
    pass


class ListUpgradeVersionsRequest(ActionRequest):
    pass


class GetFederationRequest(ActionRequest):
    pass


class CreateFederationTokenRequest(ActionRequest):
    pass


class CreateSnapshotRequest(ActionRequest):
    name: str


class GetSnapshotRequest(ActionRequest):
    snapshot_id: str = Field(alias="snapshotId")


class DeleteSnapshotRequest(ActionRequest):
    snapshot_id: str = Field(alias="snapshotId")


class RenameSnapshotRequest(ActionRequest):
    snapshot_id: str = Field(alias="snapshotId")
    name: str


class GetOperationRequest(ActionRequest):
    operation_id: str = Field(alias="operationId")


class AuditLoggingUpdate(AMAModel):
    enabled: AMABoolean
    storage_container_url: str = Field("", alias="storageContainerUrl")


class ClusterUpdate(AMAModel):
    """Combined audit-logging and version-upgrade change."""

    consul_version: str | None = Field(None, alias="consulVersion")
    audit_logging: AuditLoggingUpdate | None = Field(None, alias="auditLogging")

    @property
    def is_empty(self) -> bool:
        return not self.consul_version and self.audit_logging is None


class UpdateClusterRequest(ActionRequest):
    update: ClusterUpdate


# =============================================================================
# Responses
# =============================================================================


class OperationError(AMAModel):
    code: int = 0
    message: str = ""


class Operation(AMAModel):
    id: str = ""
    state: OperationState = OperationState.PENDING
    error: OperationError | None = None


class OperationResponse(AMAModel):
    operation: Operation = Field(default_factory=Operation)


class MasterToken(AMAModel):
    accessor_id: str = Field("", alias="accessorId")
    secret_id: str = Field("", alias="secretId")


class CreateTokenResponse(AMAModel):
    master_token: MasterToken = Field(default_factory=MasterToken, alias="masterToken")


class GetConfigResponse(AMAModel):
    """Consul client config (a JSON document in a string) and CA bundle."""

    config: str = ""
    ca_file: str = Field("", alias="caFile")


class AgentConfig(AMAModel):
    """The subset of the Consul client config the agent data sources use."""

    gossip_key: str = Field("", alias="encrypt")
    datacenter: str = ""
    retry_join: list[str] = Field(default_factory=list)


class AMAVersion(AMAModel):
    version: str = ""
    status: str = ""


class ListUpgradeVersionsResponse(AMAModel):
    versions: list[AMAVersion] | None = None


class Datacenter(AMAModel):
    name: str = ""
    resource_group: str = Field("", alias="resourceGroup")


class GetFederationResponse(AMAModel):
    primary_datacenter: Datacenter | None = Field(None, alias="primaryDatacenter")
    secondary_datacenters: list[Datacenter] = Field(
        default_factory=list, alias="secondaryDatacenters"
    )


class CreateFederationTokenResponse(AMAModel):
    federation_token: str = Field("", alias="federationToken")


class SnapshotProperties(AMAModel):
    id: str = ""
    name: str = ""
    state: str = ""
    size: str = ""
    requested_at: str = Field("", alias="requestedAt")
    finished_at: str = Field("", alias="finishedAt")
    restored_at: str = Field("", alias="restoredAt")
    product_version: str = Field("", alias="productVersion")
    type: str = ""


class CreateSnapshotResponse(AMAModel):
    snapshot_id: str = Field("", alias="snapshotId")
    operation: Operation = Field(default_factory=Operation)


class GetSnapshotResponse(AMAModel):
    snapshot: SnapshotProperties = Field(default_factory=SnapshotProperties)


class RenameSnapshotResponse(AMAModel):
    snapshot: SnapshotProperties = Field(default_factory=SnapshotProperties)


class ClusterProperties(AMAModel):
    """Properties of the consulClusters custom resource."""

    email: str = ""
    location: str = ""
    state: str = ""
    vnet_name: str = Field("", alias="vnetName")
    consul_vnet_cidr: str = Field("", alias="consulVnetCidr")
    consul_num_servers: str = Field("", alias="consulNumServers")
    consul_current_version: str = Field("", alias="consulCurrentVersion")
    consul_datacenter: str = Field("", alias="consulDatacenter")
    federation_token: str = Field("", alias="federationToken")
    consul_external_endpoint: str = Field("", alias="consulExternalEndpoint")
    consul_automatic_upgrades: str = Field("", alias="consulAutomaticUpgrades")
    consul_connect: str = Field("", alias="consulConnect")
    consul_snapshot_interval: str = Field("", alias="consulSnapshotInterval")
    consul_snapshot_retention: str = Field("", alias="consulSnapshotRetention")
    consul_config_file: str = Field("", alias="consulConfigFile")
    consul_ca_file: str = Field("", alias="consulCaFile")
    consul_external_endpoint_url: str = Field("", alias="consulExternalEndpointUrl")
    consul_private_endpoint_url: str = Field("", alias="consulPrivateEndpointUrl")
    consul_cluster_id: str = Field("", alias="consulClusterId")
    storage_account_name: str = Field("", alias="storageAccountName")
    storage_account_resource_group: str = Field("", alias="storageAccountResourceGroup")
    blob_container_name: str = Field("", alias="blobContainerName")
    managed_app_id: str = Field("", alias="managedAppId")
    managed_identity: str = Field("", alias="managedIdentity")
    audit_logging_enabled: str = Field("", alias="auditLoggingEnabled")
    audit_log_storage_container_url: str = Field("", alias="auditLogStorageContainerUrl")


class ClusterResponse(AMAModel):
    name: str = ""
    properties: ClusterProperties = Field(default_factory=ClusterProperties)
