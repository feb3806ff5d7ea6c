"""Client for the HCS custom-action API of a managed application.

Every action is a POST to
``{arm}{managedResourceGroupId}/providers/Microsoft.CustomProviders/resourceProviders/public/{action}``
with a typed JSON body carrying ``resourceGroup`` and ``subscriptionId``. Only
the cluster fetch is a GET.

The ``resourceGroup`` field is not uniform across actions: token, upgrade
list and update actions send the managed resource group id; snapshot,
federation and config actions send the resource group of the managed
application; the operation lookup sends the managed application name.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, TypeVar

from azure.core.exceptions import AzureError
from azure.core.rest import HttpRequest
from pydantic import ValidationError

from .ama_models import (
    AMAModel,
    ClusterResponse,
    ClusterUpdate,
    CreateFederationTokenRequest,
    CreateFederationTokenResponse,
    CreateSnapshotRequest,
    CreateSnapshotResponse,
    CreateTokenRequest,
    CreateTokenResponse,
    DeleteSnapshotRequest,
    GetConfigRequest,
    GetConfigResponse,
    GetFederationRequest,
    GetFederationResponse,
    GetOperationRequest,
    GetSnapshotRequest,
    GetSnapshotResponse,
    ListUpgradeVersionsRequest,
    ListUpgradeVersionsResponse,
    Operation,
    OperationResponse,
    RenameSnapshotRequest,
    RenameSnapshotResponse,
    UpdateClusterRequest,
)
from .errors import NotFoundError, RemoteAPIError, TransportError

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=AMAModel)

CUSTOM_ACTION_API_VERSION = "2018-09-01-preview"
CUSTOM_PROVIDER_PATH = "/providers/Microsoft.CustomProviders/resourceProviders/public/"
SUCCESS_STATUS_CODES = (200, 201)


class CustomActionClient:
    """Typed access to the custom actions of HCS managed applications."""

    def __init__(
        self,
        pipeline: Any,
        *,
        base_url: str,
        subscription_id: str,
        correlation_id: str,
    ) -> None:
        """Initialize the client.

        Args:
            pipeline: azure-core PipelineClient carrying auth, retry and
                correlation-id policies.
            base_url: Azure Resource Manager endpoint.
            subscription_id: Subscription sent in every action body.
            correlation_id: Attached to errors for support diagnosis.
        """
        self._pipeline = pipeline
        self._base_url = base_url.rstrip("/")
        self._subscription_id = subscription_id
        self._correlation_id = correlation_id

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    def action_url(self, managed_resource_group_id: str, action: str) -> str:
        return f"{self._base_url}{managed_resource_group_id}{CUSTOM_PROVIDER_PATH}{action}"

    def _send(
        self,
        method: str,
        managed_resource_group_id: str,
        action: str,
        body: AMAModel | None,
        response_type: type[R],
    ) -> R:
        context = {
            "action": action,
            "managed_resource_group_id": managed_resource_group_id,
            "correlation_id": self._correlation_id,
        }
        request = HttpRequest(
            method,
            self.action_url(managed_resource_group_id, action),
            params={"api-version": CUSTOM_ACTION_API_VERSION},
            json=body.to_body() if body is not None else None,
        )

        try:
            response = self._pipeline.send_request(request)
        except AzureError as e:
            raise TransportError(f"custom action {action} failed: {e}", **context) from e

        if response.status_code == 404:
            raise NotFoundError(f"custom action {action} returned 404", **context)
        if response.status_code not in SUCCESS_STATUS_CODES:
            raise RemoteAPIError(
                f"custom action {action} failed: {response.text()}",
                status_code=response.status_code,
                **context,
            )

        try:
            return response_type.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteAPIError(
                f"unable to deserialize response of custom action {action}: {e}",
                status_code=response.status_code,
                **context,
            ) from e

    async def _action(
        self,
        managed_resource_group_id: str,
        action: str,
        body: AMAModel | None,
        response_type: type[R],
        *,
        method: str = "POST",
    ) -> R:
        loop = asyncio.get_event_loop()
        logger.debug(
            "Invoking custom action",
            extra={"action": action, "managed_resource_group_id": managed_resource_group_id},
        )
        return await loop.run_in_executor(
            None,
            self._send,
            method,
            managed_resource_group_id,
            action,
            body,
            response_type,
        )

    # =========================================================================
    # Cluster
    # =========================================================================

    async def fetch_cluster(self, managed_resource_group_id: str, cluster_name: str) -> ClusterResponse:
        return await self._action(
            managed_resource_group_id,
            f"consulClusters/{cluster_name}",
            None,
            ClusterResponse,
            method="GET",
        )

    async def create_root_token(self, managed_resource_group_id: str) -> CreateTokenResponse:
        """Mint a new root token; the previous one stops working."""
        body = CreateTokenRequest(
            resource_group=managed_resource_group_id, subscription_id=self._subscription_id
        )
        return await self._action(managed_resource_group_id, "createToken", body, CreateTokenResponse)

    async def list_upgrade_versions(
        self, managed_resource_group_id: str
    ) -> ListUpgradeVersionsResponse:
        body = ListUpgradeVersionsRequest(
            resource_group=managed_resource_group_id, subscription_id=self._subscription_id
        )
        return await self._action(
            managed_resource_group_id,
            "listConsulUpgradeVersions",
            body,
            ListUpgradeVersionsResponse,
        )

    async def update_cluster(
        self, managed_resource_group_id: str, update: ClusterUpdate
    ) -> OperationResponse:
        body = UpdateClusterRequest(
            resource_group=managed_resource_group_id,
            subscription_id=self._subscription_id,
            update=update,
        )
        return await self._action(managed_resource_group_id, "update", body, OperationResponse)

    async def get_config(
        self, managed_resource_group_id: str, resource_group_name: str
    ) -> GetConfigResponse:
        body = GetConfigRequest(
            resource_group=resource_group_name, subscription_id=self._subscription_id
        )
        return await self._action(managed_resource_group_id, "config", body, GetConfigResponse)

    # =========================================================================
    # Federation
    # =========================================================================

    async def get_federation(
        self, managed_resource_group_id: str, resource_group_name: str
    ) -> GetFederationResponse:
        body = GetFederationRequest(
            resource_group=resource_group_name, subscription_id=self._subscription_id
        )
        return await self._action(
            managed_resource_group_id, "getFederation", body, GetFederationResponse
        )

    async def create_federation_token(
        self, managed_resource_group_id: str, resource_group_name: str
    ) -> CreateFederationTokenResponse:
        body = CreateFederationTokenRequest(
            resource_group=resource_group_name, subscription_id=self._subscription_id
        )
        return await self._action(
            managed_resource_group_id,
            "createFederationToken",
            body,
            CreateFederationTokenResponse,
        )

    # =========================================================================
    # Snapshots
    # =========================================================================

    async def create_snapshot(
        self, managed_resource_group_id: str, resource_group_name: str, snapshot_name: str
    ) -> CreateSnapshotResponse:
        body = CreateSnapshotRequest(
            resource_group=resource_group_name,
            subscription_id=self._subscription_id,
            name=snapshot_name,
        )
        return await self._action(
            managed_resource_group_id, "createSnapshot", body, CreateSnapshotResponse
        )

    async def get_snapshot(
        self, managed_resource_group_id: str, resource_group_name: str, snapshot_id: str
    ) -> GetSnapshotResponse:
        body = GetSnapshotRequest(
            resource_group=resource_group_name,
            subscription_id=self._subscription_id,
            snapshot_id=snapshot_id,
        )
        return await self._action(managed_resource_group_id, "getSnapshot", body, GetSnapshotResponse)

    async def delete_snapshot(
        self, managed_resource_group_id: str, resource_group_name: str, snapshot_id: str
    ) -> OperationResponse:
        body = DeleteSnapshotRequest(
            resource_group=resource_group_name,
            subscription_id=self._subscription_id,
            snapshot_id=snapshot_id,
        )
        return await self._action(managed_resource_group_id, "deleteSnapshot", body, OperationResponse)

    async def rename_snapshot(
        self,
        managed_resource_group_id: str,
        resource_group_name: str,
        snapshot_id: str,
        snapshot_name: str,
    ) -> RenameSnapshotResponse:
        body = RenameSnapshotRequest(
            resource_group=resource_group_name,
            subscription_id=self._subscription_id,
            snapshot_id=snapshot_id,
            name=snapshot_name,
        )
        return await self._action(
            managed_resource_group_id, "renameSnapshot", body, RenameSnapshotResponse
        )

    # =========================================================================
    # Operations
    # =========================================================================

    async def get_operation(
        self, operation_id: str, managed_resource_group_id: str, resource_name: str
    ) -> Operation:
        body = GetOperationRequest(
            resource_group=resource_name,
            subscription_id=self._subscription_id,
            operation_id=operation_id,
        )
        response = await self._action(managed_resource_group_id, "operation", body, OperationResponse)
        return response.operation
