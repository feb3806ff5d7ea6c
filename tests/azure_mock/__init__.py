"""Azure and HCS API mocks for integration testing.

An in-memory stand-in for the managed application control plane, the HCS
custom-action API and the public catalogs, so the reconcilers run end to
end without Azure connectivity.

Key Features:
- Managed applications, resource groups, VNets and AKS clusters
- Consul clusters, root tokens, snapshots and federation views
- Custom-action operations that finish after a configurable number of polls
- Failure injection per custom action, catalog document and tags update

Usage:
    from azure_mock import MockAzureContext

    with MockAzureContext() as ctx:
        ctx.state.add_resource_group("rg-consul")
        reconciler = ClusterReconciler(config)
        state = await reconciler.create(spec)

        assert ctx.state.calls_to("createToken")
"""

from .catalog import MockCatalog
from .context import MockAzureContext, mock_azure_context
from .credential import MockTokenCredential, create_mock_credential
from .custom_actions import MockHttpResponse, MockPipelineClient
from .hcs_state import (
    SUBSCRIPTION_ID,
    MockApplication,
    MockHCSState,
    app_id,
    make_federation_token,
)

__all__ = [
    "SUBSCRIPTION_ID",
    "MockApplication",
    "MockAzureContext",
    "MockCatalog",
    "MockHCSState",
    "MockHttpResponse",
    "MockPipelineClient",
    "MockTokenCredential",
    "app_id",
    "create_mock_credential",
    "make_federation_token",
    "mock_azure_context",
]
