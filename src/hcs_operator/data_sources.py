"""Read-only lookups for wiring clusters into other tooling.

These never change remote state. They render versions, plan defaults and
the configuration Consul agents on AKS need to join a cluster.
"""

from __future__ import annotations

import asyncio
import base64
import logging

from pydantic import BaseModel, ValidationError

from .ama_models import AgentConfig
from .catalog import HCS_PUBLISHER, fetch_plan_defaults
from .config import DEFAULT_DATA_SOURCE_TIMEOUT_SECONDS
from .errors import NotFoundError, RemoteAPIError
from .models import ClusterState
from .reconciler import ClusterReconciler, ReconcilerBase
from .resource_manager import ManagedApplication
from .versions import VersionStatus, fetch_available_versions

logger = logging.getLogger(__name__)


AGENT_SECRET_TEMPLATE = """apiVersion: v1
kind: Secret
metadata:
  name: {name}-hcs
type: Opaque
data:
  gossipEncryptionKey: {gossip_key}
  caCert: {ca_cert}"""

HELM_CONFIG_TEMPLATE = """global:
  enabled: false
  name: consul
  datacenter: {datacenter}
  acls:
    manageSystemACLs: true
    bootstrapToken:
      secretName: {name}-bootstrap-token
      secretKey: token
  gossipEncryption:
    secretName: {name}-hcs
    secretKey: gossipEncryptionKey
  tls:
    enabled: true
    enableAutoEncrypt: true
    caCert:
      secretName: {name}-hcs
      secretKey: caCert
externalServers:
  enabled: true
  hosts: {retry_join}
  httpsPort: 443
  useSystemRoots: true
  k8sAuthMethodHost: https://{fqdn}:443
client:
  enabled: true
  exposeGossipPorts: {expose_gossip_ports}
  join: {retry_join}
connectInject:
  enabled: true"""


class ConsulVersions(BaseModel):
    id: str
    recommended: str
    available: list[str]
    preview: list[str]


class PlanDefaultsInfo(BaseModel):
    id: str
    plan_name: str
    plan_version: str
    ama_api_version: str
    publisher: str
    offer: str


class AgentKubeSecret(BaseModel):
    id: str
    secret: str


class AgentHelmConfig(BaseModel):
    id: str
    config: str


def _b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


def render_retry_join(retry_join: list[str]) -> str:
    """Render ``["a", "b"]`` as the YAML flow list ``['a' 'b']``."""
    return "[" + " ".join(f"'{host}'" for host in retry_join) + "]"


def render_agent_secret(managed_application_name: str, gossip_key: str, ca_file: str) -> str:
    return AGENT_SECRET_TEMPLATE.format(
        name=managed_application_name,
        gossip_key=_b64(gossip_key),
        ca_cert=_b64(ca_file),
    )


def render_helm_config(
    managed_application_name: str,
    datacenter: str,
    fqdn: str,
    retry_join: list[str],
    expose_gossip_ports: bool,
) -> str:
    rendered_join = render_retry_join(retry_join)
    return HELM_CONFIG_TEMPLATE.format(
        name=managed_application_name.lower(),
        datacenter=datacenter,
        retry_join=rendered_join,
        fqdn=fqdn,
        expose_gossip_ports=str(expose_gossip_ports).lower(),
    )


def consul_versions_from(versions: list) -> ConsulVersions:
    """Split a catalog into recommended, available and preview versions.

    The recommended version is also listed as available.
    """
    recommended = ""
    available: list[str] = []
    preview: list[str] = []
    for v in versions:
        match v.status:
            case VersionStatus.RECOMMENDED.value:
                recommended = v.version
                available.append(v.version)
            case VersionStatus.AVAILABLE.value:
                available.append(v.version)
            case VersionStatus.PREVIEW.value:
                preview.append(v.version)
    return ConsulVersions(
        id=f"recommended/{recommended}/available_len/{len(available)}/preview_len/{len(preview)}",
        recommended=recommended,
        available=available,
        preview=preview,
    )


class DataSources(ReconcilerBase):
    """Lookups backed by the catalogs and the custom-action API."""

    async def consul_versions(self) -> ConsulVersions:
        loop = asyncio.get_event_loop()
        versions = await loop.run_in_executor(
            None, fetch_available_versions, self._config.hcp_api_domain
        )
        return consul_versions_from(versions)

    async def plan_defaults(self) -> PlanDefaultsInfo:
        loop = asyncio.get_event_loop()
        defaults = await loop.run_in_executor(None, fetch_plan_defaults, self._config.meta_url)
        return PlanDefaultsInfo(
            id=(
                f"plan_version/{defaults.version}/plan_name/{defaults.name}"
                f"/ama_api_version/{defaults.ama_api_version}"
            ),
            plan_name=defaults.name,
            plan_version=defaults.version,
            ama_api_version=defaults.ama_api_version,
            publisher=HCS_PUBLISHER,
            offer=self._config.marketplace_product_name,
        )

    async def _require_cluster(self, resource_group: str, name: str) -> ManagedApplication:
        try:
            return await self._resources.get(resource_group, name)
        except NotFoundError as e:
            raise NotFoundError(
                "HCS Cluster was not found",
                **self._context(managed_application=name, resource_group=resource_group),
            ) from e

    async def _agent_config(
        self, app: ManagedApplication, resource_group: str
    ) -> tuple[AgentConfig, str]:
        response = await self._actions.get_config(app.managed_resource_group_id, resource_group)
        try:
            config = AgentConfig.model_validate_json(response.config or "{}")
        except ValidationError as e:
            raise RemoteAPIError(
                f"unable to parse Consul config: {e}",
                **self._context(managed_application=app.name),
            ) from e
        return config, response.ca_file

    async def agent_kube_secret(self, resource_group: str, name: str) -> AgentKubeSecret:
        """Kubernetes Secret with the gossip key and CA certificate for agents."""
        return await self._with_deadline(
            self._agent_kube_secret(resource_group, name),
            DEFAULT_DATA_SOURCE_TIMEOUT_SECONDS,
            "Agent Kubernetes secret lookup",
            managed_application=name,
        )

    async def _agent_kube_secret(self, resource_group: str, name: str) -> AgentKubeSecret:
        app = await self._require_cluster(resource_group, name)
        config, ca_file = await self._agent_config(app, resource_group)
        return AgentKubeSecret(
            id=app.id, secret=render_agent_secret(name, config.gossip_key, ca_file)
        )

    async def agent_helm_config(
        self,
        resource_group: str,
        name: str,
        aks_cluster_name: str,
        aks_resource_group: str | None = None,
        expose_gossip_ports: bool = False,
    ) -> AgentHelmConfig:
        """Helm values for running Consul clients on an AKS cluster."""
        return await self._with_deadline(
            self._agent_helm_config(
                resource_group, name, aks_cluster_name, aks_resource_group, expose_gossip_ports
            ),
            DEFAULT_DATA_SOURCE_TIMEOUT_SECONDS,
            "Agent Helm config lookup",
            managed_application=name,
            aks_cluster_name=aks_cluster_name,
        )

    async def _agent_helm_config(
        self,
        resource_group: str,
        name: str,
        aks_cluster_name: str,
        aks_resource_group: str | None,
        expose_gossip_ports: bool,
    ) -> AgentHelmConfig:
        app = await self._require_cluster(resource_group, name)
        config, _ = await self._agent_config(app, resource_group)
        fqdn = await self._resources.get_managed_cluster_fqdn(
            aks_resource_group or resource_group, aks_cluster_name
        )
        return AgentHelmConfig(
            id=f"{app.id}/agent-helm-config",
            config=render_helm_config(
                name, config.datacenter, fqdn, config.retry_join, expose_gossip_ports
            ),
        )

    async def cluster(
        self, resource_group: str, name: str, cluster_name: str | None = None
    ) -> ClusterState | None:
        """Observed cluster, or None if it does not exist."""
        reconciler = ClusterReconciler(self._config, self._clients, self._shutdown_event)
        return await self._with_deadline(
            reconciler.read_by_name(resource_group, name, cluster_name),
            DEFAULT_DATA_SOURCE_TIMEOUT_SECONDS,
            "Cluster lookup",
            managed_application=name,
        )
