"""Tests for root token minting and retirement."""

from __future__ import annotations

import base64

import pytest
from azure_mock import MockAzureContext

from hcs_operator.config import Config
from hcs_operator.errors import NotFoundError
from hcs_operator.models import ClusterRef, RootTokenState
from hcs_operator.root_token import RootTokenReconciler, root_token_kubernetes_secret

REF = ClusterRef.model_validate(
    {"resourceGroupName": "rg-consul", "managedApplicationName": "consul-prod"}
)


def test_kubernetes_secret_manifest() -> None:
    manifest = root_token_kubernetes_secret("secret", "Consul-Prod")

    assert manifest == (
        "apiVersion: v1\n"
        "kind: Secret\n"
        "metadata:\n"
        "  name: consul-prod-bootstrap-token\n"
        "type: Opaque\n"
        "data:\n"
        "  token: c2VjcmV0"
    )


class TestRootTokenReconciler:
    """Tests for RootTokenReconciler against the mock control plane."""

    @pytest.mark.asyncio
    async def test_create(self, config: Config, azure: MockAzureContext) -> None:
        azure.state.add_cluster("rg-consul", "consul-prod")
        reconciler = RootTokenReconciler(config)

        token = await reconciler.create(REF)

        minted = azure.state.root_tokens[0]
        assert token.id == minted["accessorId"]
        assert token.accessor_id == minted["accessorId"]
        assert token.secret_id == minted["secretId"]
        assert token.resource_group_name == "rg-consul"
        assert token.managed_application_name == "consul-prod"
        encoded = base64.b64encode(minted["secretId"].encode()).decode()
        assert f"token: {encoded}" in token.kubernetes_secret

    @pytest.mark.asyncio
    async def test_create_without_cluster(self, config: Config, azure: MockAzureContext) -> None:
        reconciler = RootTokenReconciler(config)

        with pytest.raises(NotFoundError) as exc_info:
            await reconciler.create(REF)

        assert "unable to create root token; no HCS Cluster found" in str(exc_info.value)
        assert azure.state.root_tokens == []

    @pytest.mark.asyncio
    async def test_read_keeps_token_while_cluster_exists(
        self, config: Config, azure: MockAzureContext
    ) -> None:
        azure.state.add_cluster("rg-consul", "consul-prod")
        reconciler = RootTokenReconciler(config)
        token = await reconciler.create(REF)

        assert await reconciler.read(token) == token
        assert len(azure.state.root_tokens) == 1

    @pytest.mark.asyncio
    async def test_read_drops_token_of_missing_cluster(
        self, config: Config, azure: MockAzureContext
    ) -> None:
        tracked = RootTokenState(
            id="accessor",
            resource_group_name="rg-consul",
            managed_application_name="gone",
            accessor_id="accessor",
            secret_id="secret",
            kubernetes_secret="",
        )

        assert await RootTokenReconciler(config).read(tracked) is None

    @pytest.mark.asyncio
    async def test_delete_mints_replacement(self, config: Config, azure: MockAzureContext) -> None:
        azure.state.add_cluster("rg-consul", "consul-prod")
        reconciler = RootTokenReconciler(config)
        token = await reconciler.create(REF)

        await reconciler.delete(token)

        assert len(azure.state.root_tokens) == 2
        assert azure.state.root_tokens[1]["secretId"] != token.secret_id

    @pytest.mark.asyncio
    async def test_delete_of_missing_cluster_is_noop(
        self, config: Config, azure: MockAzureContext
    ) -> None:
        tracked = RootTokenState(
            id="accessor",
            resource_group_name="rg-consul",
            managed_application_name="gone",
            accessor_id="accessor",
            secret_id="secret",
            kubernetes_secret="",
        )

        await RootTokenReconciler(config).delete(tracked)

        assert azure.state.calls_to("createToken") == []
