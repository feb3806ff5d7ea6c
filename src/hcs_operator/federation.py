"""Federation consistency checks.

Pure functions over the ``getFederation`` view and federation tokens; no
remote calls happen here.
"""

from __future__ import annotations

import logging
from typing import Any

import jwt

from .ama_models import GetFederationResponse

logger = logging.getLogger(__name__)

PRIMARY_CLAIM = "Primary"


def is_primary_with_secondaries(
    cluster_name: str,
    resource_group: str,
    federation: GetFederationResponse | None,
) -> bool:
    """Report whether a cluster is the primary of a federation with live secondaries.

    An unfederated cluster, or a primary with no secondaries yet, is never
    reported as primary. Deleting such a cluster is always allowed.

    Args:
        cluster_name: Managed application name of the cluster.
        resource_group: Resource group of the managed application.
        federation: Federation view, or None if the cluster is not federated.

    Returns:
        True only on an exact (name, resource group) match with at least one
        secondary.
    """
    if federation is None or federation.primary_datacenter is None:
        return False
    if not federation.secondary_datacenters:
        return False
    primary = federation.primary_datacenter
    return primary.name == cluster_name and primary.resource_group == resource_group


def _primary_claim(token: str) -> Any:
    # Signature and registered claims are validated by HCS, not here.
    claims = jwt.decode(token, options={"verify_signature": False})
    return claims.get(PRIMARY_CLAIM)


def federation_tokens_have_same_primary(token_a: str, token_b: str) -> bool:
    """Compare the unverified ``Primary`` claims of two federation tokens.

    Federation tokens are not persisted by HCS, so every request yields a new
    token; two tokens minted by the same primary are interchangeable.

    Returns:
        False if either token cannot be decoded.
    """
    try:
        primary_a = _primary_claim(token_a)
        primary_b = _primary_claim(token_b)
    except jwt.PyJWTError as e:
        logger.debug("Unable to decode federation token", extra={"error": str(e)})
        return False
    return primary_a == primary_b
