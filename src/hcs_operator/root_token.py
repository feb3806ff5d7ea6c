"""Cluster root token, used to bootstrap the Consul ACL system.

HCS never returns an existing root token: minting a new one invalidates the
previous one. Deleting the tracked token therefore means minting a
replacement and discarding it.
"""

from __future__ import annotations

import base64
import logging

from .errors import NotFoundError
from .models import ClusterRef, RootTokenState
from .reconciler import ReconcilerBase

logger = logging.getLogger(__name__)

ROOT_TOKEN_SECRET_TEMPLATE = """apiVersion: v1
kind: Secret
metadata:
  name: {name}-bootstrap-token
type: Opaque
data:
  token: {token}"""


def root_token_kubernetes_secret(secret_id: str, managed_application_name: str) -> str:
    """Render a Kubernetes Secret manifest holding the base64 root token."""
    return ROOT_TOKEN_SECRET_TEMPLATE.format(
        name=managed_application_name.lower(),
        token=base64.b64encode(secret_id.encode()).decode(),
    )


class RootTokenReconciler(ReconcilerBase):
    """Mint and retire root tokens of a cluster."""

    async def create(self, ref: ClusterRef) -> RootTokenState:
        """Mint a new root token; the previous token stops working.

        Raises:
            NotFoundError: If the cluster does not exist.
        """
        return await self._with_deadline(
            self._create(ref),
            self._config.root_token_timeout_seconds,
            "Root token create",
            managed_application=ref.managed_application_name,
            resource_group=ref.resource_group_name,
        )

    async def _create(self, ref: ClusterRef) -> RootTokenState:
        context = self._context(
            managed_application=ref.managed_application_name,
            resource_group=ref.resource_group_name,
        )
        try:
            app = await self._resources.get(ref.resource_group_name, ref.managed_application_name)
        except NotFoundError as e:
            raise NotFoundError("unable to create root token; no HCS Cluster found", **context) from e

        response = await self._actions.create_root_token(app.managed_resource_group_id)
        token = response.master_token
        logger.info("Created HCS cluster root token", extra=context)
        return RootTokenState(
            id=token.accessor_id,
            resource_group_name=ref.resource_group_name,
            managed_application_name=ref.managed_application_name,
            accessor_id=token.accessor_id,
            secret_id=token.secret_id,
            kubernetes_secret=root_token_kubernetes_secret(
                token.secret_id, ref.managed_application_name
            ),
        )

    async def read(self, tracked: RootTokenState) -> RootTokenState | None:
        """Check the owning cluster still exists; the token itself is not retrievable."""
        app = await self._with_deadline(
            self._find_owner(tracked.resource_group_name, tracked.managed_application_name),
            self._config.root_token_timeout_seconds,
            "Root token read",
            managed_application=tracked.managed_application_name,
        )
        return tracked if app is not None else None

    async def delete(self, tracked: RootTokenState) -> None:
        """Invalidate the tracked token by minting and discarding a replacement."""
        await self._with_deadline(
            self._delete(tracked),
            self._config.root_token_timeout_seconds,
            "Root token delete",
            managed_application=tracked.managed_application_name,
        )

    async def _delete(self, tracked: RootTokenState) -> None:
        app = await self._find_owner(tracked.resource_group_name, tracked.managed_application_name)
        if app is None:
            return
        await self._actions.create_root_token(app.managed_resource_group_id)
        logger.info(
            "Replaced HCS cluster root token",
            extra=self._context(
                managed_application=tracked.managed_application_name,
                resource_group=tracked.resource_group_name,
            ),
        )
