"""
bmm_provider/tests/fakes.py

In-memory stand-ins for the Machine store, the event recorder and the BMM
REST client, used by the test suite.
"""

from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, List, Optional, Tuple

from bmm_provider.clients.bmm import BmmClient
from bmm_provider.errors import BmmApiError
from bmm_provider.models.bmm_api import (
    BmmResponse,
    Instance,
    InstanceCreateRequest,
    InstanceDeleteRequest,
    InstanceInterface,
)
from bmm_provider.utils.events import EventRecorder, EventType
from bmm_provider.utils.machine_doc import (
    deletion_requested,
    get_finalizers,
    machine_name,
    machine_namespace,
)
from bmm_provider.utils.machine_store import MachineStore

Key = Tuple[str, str]


class FakeMachineStore(MachineStore):
    """
    Mimics the API server closely enough for the reconciler: spec/metadata and
    status are written through separate calls, and a Machine that is being
    deleted disappears once its last finalizer is removed.
    """

    def __init__(self) -> None:
        self.machines: Dict[Key, Dict[str, Any]] = {}
        self.secrets: Dict[Key, Dict[str, str]] = {}
        self.update_calls = 0
        self.status_update_calls = 0
        self.secret_reads = 0

    def add_machine(self, doc: Dict[str, Any]) -> None:
        self.machines[(machine_namespace(doc), machine_name(doc))] = copy.deepcopy(doc)

    def stored(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        return self.machines.get((namespace, name))

    async def get_machine(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        doc = self.machines.get((namespace, name))
        return copy.deepcopy(doc) if doc is not None else None

    async def list_machines(self, namespace: Optional[str]) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(doc)
            for (ns, _), doc in sorted(self.machines.items())
            if namespace is None or ns == namespace
        ]

    async def update_machine(self, doc: Dict[str, Any]) -> None:
        self.update_calls += 1
        key = (machine_namespace(doc), machine_name(doc))
        previous = self.machines.get(key, {})
        stored = copy.deepcopy(doc)
        if "status" in previous:
            stored["status"] = copy.deepcopy(previous["status"])
        else:
            stored.pop("status", None)
        if deletion_requested(stored) and not get_finalizers(stored):
            self.machines.pop(key, None)
        else:
            self.machines[key] = stored
        doc.clear()
        doc.update(copy.deepcopy(stored))

    async def update_machine_status(self, doc: Dict[str, Any]) -> None:
        self.status_update_calls += 1
        key = (machine_namespace(doc), machine_name(doc))
        stored = copy.deepcopy(self.machines.get(key, doc))
        stored["status"] = copy.deepcopy(doc.get("status", {}))
        self.machines[key] = stored
        doc.clear()
        doc.update(copy.deepcopy(stored))

    async def get_secret_data(
        self, name: str, namespace: str
    ) -> Optional[Dict[str, str]]:
        self.secret_reads += 1
        data = self.secrets.get((namespace, name))
        return dict(data) if data is not None else None


class FakeRecorder(EventRecorder):
    def __init__(self) -> None:
        self.events: List[Tuple[str, str, str]] = []

    async def record(
        self,
        machine: Dict[str, Any],
        event_type: EventType,
        reason: str,
        message: str,
    ) -> None:
        self.events.append((event_type.value, reason, message))

    def reasons(self) -> List[str]:
        return [reason for _, reason, _ in self.events]


class FakeBmmClient(BmmClient):
    """
    Canned BMM platform. Created instances are kept in `instances` so tests can
    change what a later get returns. Setting one of the *_error attributes makes
    the matching call raise BmmApiError.
    """

    def __init__(self) -> None:
        self.instances: Dict[uuid.UUID, Instance] = {}
        self.calls: List[Tuple[str, str, Any]] = []
        self.create_requests: List[InstanceCreateRequest] = []
        self.create_error: Optional[BmmApiError] = None
        self.get_error: Optional[BmmApiError] = None
        self.delete_error: Optional[BmmApiError] = None
        self.create_status: Optional[int] = None
        self.delete_status: Optional[int] = None
        self.entered = 0
        self.exited = 0

    async def __aenter__(self) -> FakeBmmClient:
        self.entered += 1
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.exited += 1

    def call_names(self) -> List[str]:
        return [name for name, _, _ in self.calls]

    async def create_instance(
        self, org: str, body: InstanceCreateRequest
    ) -> BmmResponse:
        self.calls.append(("create", org, body))
        self.create_requests.append(body)
        if self.create_error is not None:
            raise self.create_error
        if self.create_status is not None:
            return BmmResponse(status_code=self.create_status)
        instance = Instance(
            id=uuid.uuid4(),
            name=body.name,
            machine_id=body.machine_id,
            status="Provisioning",
            interfaces=[
                InstanceInterface(
                    subnet_id=iface.subnet_id,
                    is_physical=iface.is_physical,
                    ip_addresses=[f"10.0.{i}.10"],
                )
                for i, iface in enumerate(body.interfaces)
            ],
        )
        self.instances[instance.id] = instance
        return BmmResponse(status_code=201, instance=instance)

    async def get_instance(
        self,
        org: str,
        instance_id: uuid.UUID,
        params: Optional[Dict[str, str]] = None,
    ) -> BmmResponse:
        self.calls.append(("get", org, instance_id))
        if self.get_error is not None:
            raise self.get_error
        instance = self.instances.get(instance_id)
        if instance is None:
            return BmmResponse(status_code=404)
        return BmmResponse(status_code=200, instance=instance)

    async def delete_instance(
        self, org: str, instance_id: uuid.UUID, body: InstanceDeleteRequest
    ) -> BmmResponse:
        self.calls.append(("delete", org, instance_id))
        if self.delete_error is not None:
            raise self.delete_error
        if self.delete_status is not None:
            return BmmResponse(status_code=self.delete_status)
        if self.instances.pop(instance_id, None) is None:
            return BmmResponse(status_code=404)
        return BmmResponse(status_code=204)


SITE_ID = "550e8400-e29b-41d4-a716-446655440000"
TENANT_ID = "660e8400-e29b-41d4-a716-446655440001"
VPC_ID = "770e8400-e29b-41d4-a716-446655440002"
SUBNET_ID = "880e8400-e29b-41d4-a716-446655440003"
ORG = "test-org"

VALID_SPEC: Dict[str, Any] = {
    "siteId": SITE_ID,
    "tenantId": TENANT_ID,
    "vpcId": VPC_ID,
    "subnetId": SUBNET_ID,
    "credentialsSecret": {"name": "nvidia-bmm-creds", "namespace": "default"},
}

CREDENTIALS = {
    "endpoint": "https://api.nvidia-bmm.test",
    "orgName": ORG,
    "token": "test-token",
}


def make_machine(
    spec_value: Optional[Dict[str, Any]] = None,
    *,
    name: str = "test-machine",
    namespace: str = "default",
    finalizers: Optional[List[str]] = None,
    provider_status: Optional[Dict[str, Any]] = None,
    deleting: bool = False,
) -> Dict[str, Any]:
    """A Machine document as 'kubectl get -o json' would return it."""
    doc: Dict[str, Any] = {
        "apiVersion": "machine.openshift.io/v1beta1",
        "kind": "Machine",
        "metadata": {
            "name": name,
            "namespace": namespace,
            "uid": "1b4e28ba-2fa1-11d2-883f-0016d3cca427",
            "resourceVersion": "1",
        },
        "spec": {
            "providerSpec": {
                "value": copy.deepcopy(VALID_SPEC if spec_value is None else spec_value)
            }
        },
    }
    if finalizers:
        doc["metadata"]["finalizers"] = list(finalizers)
    if deleting:
        doc["metadata"]["deletionTimestamp"] = "2026-01-01T00:00:00Z"
    if provider_status is not None:
        doc["status"] = {"providerStatus": copy.deepcopy(provider_status)}
    return doc
