"""
bmm_provider/utils/machine_store.py

Storage classes for reading and persisting Machine documents and for reading
the credentials Secret they reference:
  - MachineStore          (abstract)
  - KubectlMachineStore   (machines.machine.openshift.io through kubectl)

Writes update the caller's document in place with the stored object, so a
following write carries the new resourceVersion.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from bmm_provider.utils.k8s import (
    get_k8s_object,
    get_k8s_secret_data,
    list_k8s_objects,
    replace_k8s_object,
)

MACHINE_RESOURCE = "machines.machine.openshift.io"


def _refresh_in_place(doc: Dict[str, Any], stored: Dict[str, Any]) -> None:
    doc.clear()
    doc.update(stored)


class MachineStore(ABC):
    """Abstract base class for Machine persistence and Secret lookup."""

    @abstractmethod
    async def get_machine(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        """
        Read one Machine.

        Returns:
            Optional[Dict[str, Any]]: The Machine document, or None if it does not exist.
        """

    @abstractmethod
    async def list_machines(self, namespace: Optional[str]) -> List[Dict[str, Any]]:
        """List Machines in a namespace, or in all namespaces when None."""

    @abstractmethod
    async def update_machine(self, doc: Dict[str, Any]) -> None:
        """Persist metadata and spec (finalizers, annotations, providerID)."""

    @abstractmethod
    async def update_machine_status(self, doc: Dict[str, Any]) -> None:
        """Persist the status subresource (providerStatus)."""

    @abstractmethod
    async def get_secret_data(
        self, name: str, namespace: str
    ) -> Optional[Dict[str, str]]:
        """
        Read a Secret's decoded key-value data.

        Returns:
            Optional[Dict[str, str]]: The data, or None if the Secret does not exist.

        Raises:
            ValueError: If the Secret's data cannot be decoded.
        """


class KubectlMachineStore(MachineStore):
    """
    MachineStore backed by the OpenShift Machine API through 'kubectl'.
    """

    def __init__(self, kubectl: str = "kubectl", resource: str = MACHINE_RESOURCE) -> None:
        self.kubectl = kubectl
        self.resource = resource

    async def get_machine(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        return await get_k8s_object(
            self.resource, name, namespace, kubectl=self.kubectl
        )

    async def list_machines(self, namespace: Optional[str]) -> List[Dict[str, Any]]:
        return await list_k8s_objects(self.resource, namespace, kubectl=self.kubectl)

    async def update_machine(self, doc: Dict[str, Any]) -> None:
        stored = await replace_k8s_object(doc, kubectl=self.kubectl)
        _refresh_in_place(doc, stored)

    async def update_machine_status(self, doc: Dict[str, Any]) -> None:
        stored = await replace_k8s_object(doc, subresource="status", kubectl=self.kubectl)
        _refresh_in_place(doc, stored)

    async def get_secret_data(
        self, name: str, namespace: str
    ) -> Optional[Dict[str, str]]:
        return await get_k8s_secret_data(name, namespace, kubectl=self.kubectl)
