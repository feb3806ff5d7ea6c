"""Azure Resource Manager access for managed applications and their surroundings.

Wraps the management SDK clients so reconcilers only see plain values and
the errors from ``errors.py``. Every SDK call is blocking and runs in the
default executor.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from azure.core.exceptions import AzureError, HttpResponseError
from azure.mgmt.resource.managedapplications.models import (
    Application,
    ApplicationPatchable,
    Plan,
)

from .errors import HCSError, from_azure_error
from .operations import LROCompletion

if TYPE_CHECKING:
    from .resolution import ResolvedClusterConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

MANAGED_APPLICATION_KIND = "MarketPlace"


class CallOutcome(str, Enum):
    """How a remote call ended, including the accepted-but-reported-as-error case."""

    SUCCESS = "success"
    ACCEPTED_ASYNC = "accepted_async"
    FAILED = "failed"


@dataclass(frozen=True)
class CallResult:
    """Outcome of a call whose status code needs explicit classification."""

    outcome: CallOutcome
    status_code: int | None = None
    error: HCSError | None = None


@dataclass(frozen=True)
class ManagedApplication:
    """The parts of a managed application the reconcilers use."""

    id: str
    name: str
    managed_resource_group_id: str
    location: str = ""
    plan_name: str = ""
    tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_sdk(cls, app: Any) -> ManagedApplication:
        return cls(
            id=app.id or "",
            name=app.name or "",
            managed_resource_group_id=app.managed_resource_group_id or "",
            location=app.location or "",
            plan_name=app.plan.name if app.plan is not None else "",
            tags={k: v for k, v in (app.tags or {}).items() if v is not None},
        )


@dataclass(frozen=True)
class ResourceGroupInfo:
    id: str
    location: str


@dataclass(frozen=True)
class VirtualNetworkInfo:
    id: str
    name: str


class ResourceManagerGateway:
    """Managed applications, resource groups, VNets and AKS clusters."""

    def __init__(
        self,
        *,
        application_client: Any,
        resource_client: Any,
        network_client: Any,
        container_client: Any,
        correlation_id: str,
    ) -> None:
        self._apps = application_client
        self._resources = resource_client
        self._network = network_client
        self._containers = container_client
        self._correlation_id = correlation_id

    async def _call(
        self, fn: Callable[..., T], *args: Any, description: str, **context: Any
    ) -> T:
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, functools.partial(fn, *args))
        except AzureError as e:
            raise from_azure_error(
                e, description, correlation_id=self._correlation_id, **context
            ) from e

    # =========================================================================
    # Managed applications
    # =========================================================================

    async def get(self, resource_group: str, name: str) -> ManagedApplication:
        """Get a managed application by resource group and name.

        Raises:
            NotFoundError: If it does not exist.
        """
        app = await self._call(
            self._apps.applications.get,
            resource_group,
            name,
            description="unable to fetch managed application",
            managed_application=name,
            resource_group=resource_group,
        )
        return ManagedApplication.from_sdk(app)

    async def get_by_id(self, application_id: str) -> ManagedApplication:
        """Get a managed application by id.

        Raises:
            NotFoundError: If it does not exist.
        """
        app = await self._call(
            self._apps.applications.get_by_id,
            application_id,
            description="unable to fetch managed application",
            managed_application_id=application_id,
        )
        return ManagedApplication.from_sdk(app)

    async def begin_create(
        self,
        resource_group: str,
        name: str,
        resolved: ResolvedClusterConfig,
    ) -> LROCompletion:
        """Submit creation of the managed application shell for a cluster."""
        context = {
            "managed_application": name,
            "resource_group": resource_group,
            "correlation_id": self._correlation_id,
        }
        parameters = Application(
            location=resolved.location,
            kind=MANAGED_APPLICATION_KIND,
            managed_resource_group_id=resolved.managed_resource_group_id,
            parameters=resolved.to_arm_parameters(),
            plan=Plan(
                name=resolved.plan_name,
                version=resolved.plan_version,
                product=resolved.plan_product,
                publisher=resolved.plan_publisher,
            ),
            tags=resolved.tags or None,
        )
        poller = await self._call(
            self._apps.applications.begin_create_or_update,
            resource_group,
            name,
            parameters,
            description="unable to create HCS cluster",
            managed_application=name,
            resource_group=resource_group,
        )
        return LROCompletion(poller, "creation of HCS cluster", **context)

    async def begin_delete_by_id(self, application_id: str) -> LROCompletion:
        poller = await self._call(
            self._apps.applications.begin_delete_by_id,
            application_id,
            description="unable to delete HCS cluster",
            managed_application_id=application_id,
        )
        return LROCompletion(
            poller,
            "delete of HCS cluster",
            managed_application_id=application_id,
            correlation_id=self._correlation_id,
        )

    async def update_tags(
        self, resource_group: str, name: str, tags: Mapping[str, str]
    ) -> CallResult:
        """Replace the tags of a managed application.

        The service answers 202 Accepted, which the SDK reports as an error.
        That case is returned as ACCEPTED_ASYNC rather than raised.
        """
        loop = asyncio.get_event_loop()
        patch = ApplicationPatchable(tags=dict(tags))
        try:
            await loop.run_in_executor(
                None,
                functools.partial(
                    self._apps.applications.update, resource_group, name, parameters=patch
                ),
            )
        except HttpResponseError as e:
            if e.status_code == 202:
                return CallResult(CallOutcome.ACCEPTED_ASYNC, status_code=202)
            return CallResult(
                CallOutcome.FAILED,
                status_code=e.status_code,
                error=from_azure_error(
                    e,
                    "unable to update Managed Application tags",
                    managed_application=name,
                    resource_group=resource_group,
                    correlation_id=self._correlation_id,
                ),
            )
        except AzureError as e:
            return CallResult(
                CallOutcome.FAILED,
                error=from_azure_error(
                    e,
                    "unable to update Managed Application tags",
                    managed_application=name,
                    resource_group=resource_group,
                    correlation_id=self._correlation_id,
                ),
            )
        return CallResult(CallOutcome.SUCCESS, status_code=200)

    # =========================================================================
    # Surroundings
    # =========================================================================

    async def get_resource_group(self, name: str) -> ResourceGroupInfo:
        group = await self._call(
            self._resources.resource_groups.get,
            name,
            description="unable to fetch resource group",
            resource_group=name,
        )
        return ResourceGroupInfo(id=group.id or "", location=group.location or "")

    async def get_virtual_network(self, resource_group: str, name: str) -> VirtualNetworkInfo:
        vnet = await self._call(
            self._network.virtual_networks.get,
            resource_group,
            name,
            description="unable to fetch VNet for HCS cluster",
            managed_resource_group=resource_group,
            vnet_name=name,
        )
        return VirtualNetworkInfo(id=vnet.id or "", name=vnet.name or "")

    async def get_managed_cluster_fqdn(self, resource_group: str, name: str) -> str:
        """Return the API server FQDN of an AKS cluster."""
        cluster = await self._call(
            self._containers.managed_clusters.get,
            resource_group,
            name,
            description="unable to retrieve AKS cluster",
            aks_cluster=name,
            aks_resource_group=resource_group,
        )
        return cluster.fqdn or ""
