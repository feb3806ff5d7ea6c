"""Tests for Consul version selection and the version catalog."""

from __future__ import annotations

import pytest
from azure_mock import MockAzureContext

from hcs_operator.ama_models import AMAVersion
from hcs_operator.errors import TransportError
from hcs_operator.versions import (
    Version,
    fetch_available_versions,
    from_ama_versions,
    is_valid_version,
    normalize_version,
    recommended_version,
    version_status,
    versions_url,
)


class TestRecommendedVersion:
    """Tests for picking the default Consul version."""

    def test_recommended_wins(self) -> None:
        versions = [
            Version("v1.8.4", "AVAILABLE"),
            Version("v1.9.0", "RECOMMENDED"),
            Version("v1.10.0", "PREVIEW"),
        ]

        assert recommended_version(versions) == "v1.9.0"

    def test_last_entry_without_recommended(self) -> None:
        versions = [Version("v1.8.4", "AVAILABLE"), Version("v1.8.5", "AVAILABLE")]

        assert recommended_version(versions) == "v1.8.5"

    def test_empty_catalog(self) -> None:
        assert recommended_version([]) == ""


class TestVersionHelpers:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("1.9.0", "v1.9.0"), ("v1.9.0", "v1.9.0"), ("", "v")],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_version(raw) == expected

    def test_is_valid_is_exact(self) -> None:
        versions = [Version("v1.9.0", "RECOMMENDED")]

        assert is_valid_version("v1.9.0", versions)
        assert not is_valid_version("1.9.0", versions)
        assert not is_valid_version("v1.9.1", versions)

    def test_version_status_mapping(self) -> None:
        assert version_status("PREVIEW") == "PREVIEW"
        assert version_status("DEPRECATED") == ""

    def test_from_ama_versions(self) -> None:
        versions = from_ama_versions(
            [AMAVersion(version="v1.9.1", status="AVAILABLE"), AMAVersion(version="v2.0.0")]
        )

        assert versions == [Version("v1.9.1", "AVAILABLE"), Version("v2.0.0", "")]
        assert from_ama_versions(None) == []

    def test_str(self) -> None:
        assert str(Version("v1.9.0", "RECOMMENDED")) == "v1.9.0 (RECOMMENDED)"
        assert str(Version("v1.9.0", "")) == "v1.9.0"

    def test_versions_url(self) -> None:
        expected = "https://api.example.com/consul/2021-02-04/versions?platform_type=HCS"

        assert versions_url("api.example.com") == expected
        assert versions_url("https://api.example.com/") == expected


class TestFetchAvailableVersions:
    """Tests for the HCP version catalog client."""

    def test_fetch_in_response_order(self, azure: MockAzureContext) -> None:
        versions = fetch_available_versions("api.cloud.hashicorp.com")

        assert [v.version for v in versions] == ["v1.8.4", "v1.9.0", "v1.10.0-beta"]
        assert versions[1].status == "RECOMMENDED"
        assert azure.catalog.requested_urls == [versions_url("api.cloud.hashicorp.com")]

    def test_network_failure(self, azure: MockAzureContext) -> None:
        azure.state.catalog_failures.add("versions")

        with pytest.raises(TransportError) as exc_info:
            fetch_available_versions("api.cloud.hashicorp.com")

        assert "unable to retrieve available Consul versions" in str(exc_info.value)

    def test_empty_catalog(self, azure: MockAzureContext) -> None:
        azure.state.versions = []

        assert fetch_available_versions("api.cloud.hashicorp.com") == []
