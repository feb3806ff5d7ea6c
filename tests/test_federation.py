"""Tests for federation consistency checks."""

from __future__ import annotations

from azure_mock import make_federation_token

from hcs_operator.ama_models import Datacenter, GetFederationResponse
from hcs_operator.federation import (
    federation_tokens_have_same_primary,
    is_primary_with_secondaries,
)


def federation(primary: str, *secondaries: str, resource_group: str = "rg-consul") -> GetFederationResponse:
    return GetFederationResponse(
        primary_datacenter=Datacenter(name=primary, resource_group=resource_group),
        secondary_datacenters=[Datacenter(name=s, resource_group=resource_group) for s in secondaries],
    )


class TestIsPrimaryWithSecondaries:
    """Tests for the delete guard on federation primaries."""

    def test_primary_with_secondaries(self) -> None:
        view = federation("consul-primary", "consul-secondary")

        assert is_primary_with_secondaries("consul-primary", "rg-consul", view)

    def test_secondary_is_not_primary(self) -> None:
        view = federation("consul-primary", "consul-secondary")

        assert not is_primary_with_secondaries("consul-secondary", "rg-consul", view)

    def test_primary_without_secondaries(self) -> None:
        assert not is_primary_with_secondaries(
            "consul-primary", "rg-consul", federation("consul-primary")
        )

    def test_same_name_other_resource_group(self) -> None:
        view = federation("consul-primary", "consul-secondary", resource_group="rg-other")

        assert not is_primary_with_secondaries("consul-primary", "rg-consul", view)

    def test_unfederated(self) -> None:
        assert not is_primary_with_secondaries("consul-primary", "rg-consul", None)
        assert not is_primary_with_secondaries(
            "consul-primary", "rg-consul", GetFederationResponse()
        )

    def test_parsed_from_wire(self) -> None:
        view = GetFederationResponse.model_validate(
            {
                "primaryDatacenter": {"name": "consul-primary", "resourceGroup": "rg-consul"},
                "secondaryDatacenters": [{"name": "consul-secondary", "resourceGroup": "rg-consul"}],
            }
        )

        assert is_primary_with_secondaries("consul-primary", "rg-consul", view)


class TestFederationTokens:
    """Tests for comparing federation tokens by primary."""

    def test_fresh_tokens_from_same_primary(self) -> None:
        first = make_federation_token("primary-a")
        second = make_federation_token("primary-a")

        assert first != second
        assert federation_tokens_have_same_primary(first, second)

    def test_tokens_from_different_primaries(self) -> None:
        assert not federation_tokens_have_same_primary(
            make_federation_token("primary-a"), make_federation_token("primary-b")
        )

    def test_garbage_token(self) -> None:
        assert not federation_tokens_have_same_primary(
            "not-a-jwt", make_federation_token("primary-a")
        )
