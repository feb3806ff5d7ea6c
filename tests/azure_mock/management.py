"""Mock management SDK clients backed by MockHCSState.

Only the operation groups and methods the gateway calls exist; anything
else raises AttributeError so an unexpected call fails loudly.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from .hcs_state import MockApplication, MockHCSState, resource_group_id


class _MockLROPoller:
    """Mock long-running operation poller."""

    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self._result = result
        self._error = error
        self._done = False

    def result(self, timeout: float | None = None) -> Any:
        self._done = True
        if self._error is not None:
            raise self._error
        return self._result

    def wait(self, timeout: float | None = None) -> None:
        self._done = True

    def done(self) -> bool:
        return self._done

    def status(self) -> str:
        if self._error is not None:
            return "Failed"
        return "Succeeded" if self._done else "InProgress"


def _sdk_application(app: MockApplication) -> SimpleNamespace:
    return SimpleNamespace(
        id=app.id,
        name=app.name,
        managed_resource_group_id=app.managed_resource_group_id,
        location=app.location,
        plan=SimpleNamespace(name=app.plan_name),
        tags=dict(app.tags),
    )


def _not_found(what: str) -> ResourceNotFoundError:
    return ResourceNotFoundError(message=f"{what} was not found")


class _MockApplicationsOperations:
    def __init__(self, state: MockHCSState) -> None:
        self._state = state
        self.update_calls: list[dict[str, Any]] = []

    def get(self, resource_group_name: str, application_name: str) -> SimpleNamespace:
        app = self._state.find_application(resource_group_name, application_name)
        if app is None:
            raise _not_found(f"Application {application_name}")
        return _sdk_application(app)

    def get_by_id(self, application_id: str) -> SimpleNamespace:
        app = self._state.applications.get(application_id)
        if app is None:
            raise _not_found(f"Application {application_id}")
        return _sdk_application(app)

    def begin_create_or_update(
        self, resource_group_name: str, application_name: str, parameters: Any
    ) -> _MockLROPoller:
        if self._state.fail_create:
            error = HttpResponseError(message="Simulated managed application deployment failure")
            error.status_code = 409
            return _MockLROPoller(error=error)

        app = self._state.create_application(
            resource_group_name,
            application_name,
            location=parameters.location,
            managed_resource_group_id=parameters.managed_resource_group_id,
            plan_name=parameters.plan.name,
            parameters=parameters.parameters,
            tags=parameters.tags,
        )
        return _MockLROPoller(result=_sdk_application(app))

    def begin_delete_by_id(self, application_id: str) -> _MockLROPoller:
        if application_id not in self._state.applications:
            return _MockLROPoller(error=_not_found(f"Application {application_id}"))
        self._state.delete_application(application_id)
        return _MockLROPoller()

    def update(
        self, resource_group_name: str, application_name: str, parameters: Any = None
    ) -> SimpleNamespace:
        self.update_calls.append(
            {"resource_group": resource_group_name, "name": application_name, "tags": parameters.tags}
        )
        app = self._state.find_application(resource_group_name, application_name)
        if app is None:
            raise _not_found(f"Application {application_name}")
        app.tags = dict(parameters.tags or {})

        status = self._state.tags_update_status
        if status is not None:
            error = HttpResponseError(message=f"Operation returned an invalid status code {status}")
            error.status_code = status
            raise error
        return _sdk_application(app)


class MockApplicationClient:
    """Mock of azure.mgmt.resource.managedapplications.ApplicationClient."""

    def __init__(self, state: MockHCSState, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.applications = _MockApplicationsOperations(state)


class _MockResourceGroupsOperations:
    def __init__(self, state: MockHCSState) -> None:
        self._state = state

    def get(self, resource_group_name: str) -> SimpleNamespace:
        location = self._state.resource_groups.get(resource_group_name)
        if location is None:
            raise _not_found(f"Resource group {resource_group_name}")
        return SimpleNamespace(id=resource_group_id(resource_group_name), location=location)


class MockResourceClient:
    """Mock of azure.mgmt.resource.ResourceManagementClient."""

    def __init__(self, state: MockHCSState, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.resource_groups = _MockResourceGroupsOperations(state)


class _MockVirtualNetworksOperations:
    def __init__(self, state: MockHCSState) -> None:
        self._state = state

    def get(self, resource_group_name: str, virtual_network_name: str) -> SimpleNamespace:
        vnet_id = self._state.vnets.get((resource_group_name, virtual_network_name))
        if vnet_id is None:
            raise _not_found(f"Virtual network {virtual_network_name}")
        return SimpleNamespace(id=vnet_id, name=virtual_network_name)


class MockNetworkClient:
    """Mock of azure.mgmt.network.NetworkManagementClient."""

    def __init__(self, state: MockHCSState, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.virtual_networks = _MockVirtualNetworksOperations(state)


class _MockManagedClustersOperations:
    def __init__(self, state: MockHCSState) -> None:
        self._state = state

    def get(self, resource_group_name: str, resource_name: str) -> SimpleNamespace:
        fqdn = self._state.aks_clusters.get((resource_group_name, resource_name))
        if fqdn is None:
            raise _not_found(f"Managed cluster {resource_name}")
        return SimpleNamespace(name=resource_name, fqdn=fqdn)


class MockContainerServiceClient:
    """Mock of azure.mgmt.containerservice.ContainerServiceClient."""

    def __init__(self, state: MockHCSState, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.managed_clusters = _MockManagedClustersOperations(state)
