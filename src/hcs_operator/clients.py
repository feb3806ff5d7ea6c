"""Construction of every remote client the reconcilers use.

All clients share one credential and send the process correlation id in the
``x-ms-correlation-request-id`` header.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from azure.core import PipelineClient
from azure.core.credentials import TokenCredential
from azure.core.pipeline.policies import (
    BearerTokenCredentialPolicy,
    HeadersPolicy,
    RetryPolicy,
    UserAgentPolicy,
)
from azure.mgmt.containerservice import ContainerServiceClient
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.managedapplications import ApplicationClient

from .config import Config
from .custom_actions import CustomActionClient
from .resource_manager import ResourceManagerGateway
from .versions import USER_AGENT

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "x-ms-correlation-request-id"


@dataclass
class AzureClients:
    """Remote clients for one operator process."""

    resources: ResourceManagerGateway
    custom_actions: CustomActionClient
    correlation_id: str


def _headers_policy(config: Config) -> HeadersPolicy:
    return HeadersPolicy({CORRELATION_ID_HEADER: config.correlation_id})


def build_custom_action_pipeline(config: Config, credential: TokenCredential) -> PipelineClient:
    endpoint = config.resource_manager_endpoint.rstrip("/")
    return PipelineClient(
        base_url=endpoint,
        policies=[
            _headers_policy(config),
            UserAgentPolicy(sdk_moniker=USER_AGENT),
            RetryPolicy(),
            BearerTokenCredentialPolicy(credential, f"{endpoint}/.default"),
        ],
    )


def build_clients(config: Config, credential: TokenCredential) -> AzureClients:
    """Build the management SDK clients and the custom-action client."""
    common = {
        "credential": credential,
        "subscription_id": config.subscription_id,
        "base_url": config.resource_manager_endpoint,
        "headers_policy": _headers_policy(config),
    }

    gateway = ResourceManagerGateway(
        application_client=ApplicationClient(**common),
        resource_client=ResourceManagementClient(**common),
        network_client=NetworkManagementClient(**common),
        container_client=ContainerServiceClient(**common),
        correlation_id=config.correlation_id,
    )
    custom_actions = CustomActionClient(
        build_custom_action_pipeline(config, credential),
        base_url=config.resource_manager_endpoint,
        subscription_id=config.subscription_id,
        correlation_id=config.correlation_id,
    )

    logger.debug(
        "Azure clients initialized",
        extra={
            "subscription_id": config.subscription_id,
            "correlation_id": config.correlation_id,
        },
    )
    return AzureClients(
        resources=gateway,
        custom_actions=custom_actions,
        correlation_id=config.correlation_id,
    )
