"""Federation tokens minted by a primary cluster for secondaries to join.

Tokens are not persisted by HCS; every request yields a new one bound to the
same primary.
"""

from __future__ import annotations

import logging

from .errors import HCSError, NotFoundError
from .federation import is_primary_with_secondaries
from .models import ClusterRef, FederationTokenState
from .reconciler import ReconcilerBase
from .resource_manager import ManagedApplication

logger = logging.getLogger(__name__)

FEDERATION_TOKEN_ID_SUFFIX = "/federation-token"


def federation_token_id(managed_application_id: str) -> str:
    return managed_application_id + FEDERATION_TOKEN_ID_SUFFIX


class FederationTokenReconciler(ReconcilerBase):
    """Federation token resource and data source."""

    async def _token_state(
        self, ref: ClusterRef, app: ManagedApplication
    ) -> FederationTokenState:
        response = await self._actions.create_federation_token(
            app.managed_resource_group_id, ref.resource_group_name
        )
        return FederationTokenState(
            id=federation_token_id(app.id),
            resource_group_name=ref.resource_group_name,
            managed_application_name=ref.managed_application_name,
            token=response.federation_token,
        )

    async def create(self, ref: ClusterRef) -> FederationTokenState:
        """Mint a federation token from the given primary cluster.

        Raises:
            NotFoundError: If the primary cluster does not exist.
        """
        return await self._with_deadline(
            self._create(ref),
            self._config.root_token_timeout_seconds,
            "Federation token create",
            managed_application=ref.managed_application_name,
        )

    async def _create(self, ref: ClusterRef) -> FederationTokenState:
        app = await self._resources.get(ref.resource_group_name, ref.managed_application_name)
        state = await self._token_state(ref, app)
        logger.info(
            "Created federation token",
            extra=self._context(
                managed_application=ref.managed_application_name,
                resource_group=ref.resource_group_name,
            ),
        )
        return state

    async def read(self, tracked: FederationTokenState) -> FederationTokenState | None:
        """Keep the tracked token while its primary cluster exists."""
        app = await self._with_deadline(
            self._find_owner(tracked.resource_group_name, tracked.managed_application_name),
            self._config.root_token_timeout_seconds,
            "Federation token read",
            managed_application=tracked.managed_application_name,
        )
        return tracked if app is not None else None

    async def delete(self, tracked: FederationTokenState) -> None:
        """Federation tokens cannot be revoked; forgetting them is enough."""
        logger.debug("Forgetting federation token", extra={"id": tracked.id})

    async def lookup(self, ref: ClusterRef) -> FederationTokenState | None:
        """Data source: a fresh token if the cluster is a primary with secondaries.

        Returns:
            None when the cluster is unfederated or not the primary.
        """
        return await self._with_deadline(
            self._lookup(ref),
            self._config.root_token_timeout_seconds,
            "Federation token lookup",
            managed_application=ref.managed_application_name,
        )

    async def _lookup(self, ref: ClusterRef) -> FederationTokenState | None:
        try:
            app = await self._resources.get(ref.resource_group_name, ref.managed_application_name)
        except NotFoundError as e:
            raise NotFoundError(
                "unable to fetch HCS cluster to be used as primary federation cluster",
                **self._context(
                    managed_application=ref.managed_application_name,
                    resource_group=ref.resource_group_name,
                ),
            ) from e

        try:
            federation = await self._actions.get_federation(
                app.managed_resource_group_id, ref.resource_group_name
            )
        except HCSError as e:
            # An error here means the cluster is not part of a federation
            logger.debug("Cluster is not federated", extra={"error": str(e)})
            return None

        if not is_primary_with_secondaries(app.name, ref.resource_group_name, federation):
            return None
        return await self._token_state(ref, app)
