"""
bmm_provider/utils/events.py

Operator-visible notifications attached to a Machine as core/v1 Events.
Recording is best effort: a failure to record is logged and never raised.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from bmm_provider.utils.async_command_runner import CommandError
from bmm_provider.utils.k8s import create_k8s_object
from bmm_provider.utils.machine_doc import machine_key

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    NORMAL = "Normal"
    WARNING = "Warning"


class EventRecorder(ABC):
    """Records an event against a Machine document."""

    @abstractmethod
    async def record(
        self,
        machine: Dict[str, Any],
        event_type: EventType,
        reason: str,
        message: str,
    ) -> None:
        """Record one event. Implementations must not raise."""


def build_event_manifest(
    machine: Dict[str, Any],
    event_type: EventType,
    reason: str,
    message: str,
    component: str,
) -> Dict[str, Any]:
    """Build a core/v1 Event referencing the Machine as involvedObject."""
    meta = machine.get("metadata") or {}
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return {
        "apiVersion": "v1",
        "kind": "Event",
        "metadata": {
            "generateName": f"{meta.get('name', 'machine')}.",
            "namespace": meta.get("namespace", "default"),
        },
        "involvedObject": {
            "apiVersion": machine.get("apiVersion", "machine.openshift.io/v1beta1"),
            "kind": machine.get("kind", "Machine"),
            "name": meta.get("name", ""),
            "namespace": meta.get("namespace", ""),
            "uid": meta.get("uid", ""),
            "resourceVersion": meta.get("resourceVersion", ""),
        },
        "type": event_type.value,
        "reason": reason,
        "message": message,
        "source": {"component": component},
        "firstTimestamp": now,
        "lastTimestamp": now,
        "count": 1,
    }


class KubectlEventRecorder(EventRecorder):
    """EventRecorder that creates Events with 'kubectl create'."""

    def __init__(self, component: str, kubectl: str = "kubectl") -> None:
        self.component = component
        self.kubectl = kubectl

    async def record(
        self,
        machine: Dict[str, Any],
        event_type: EventType,
        reason: str,
        message: str,
    ) -> None:
        manifest = build_event_manifest(
            machine, event_type, reason, message, self.component
        )
        try:
            await create_k8s_object(manifest, kubectl=self.kubectl)
        except CommandError as ex:
            logger.warning(
                "Could not record %s event %r for machine %s: %s",
                event_type.value,
                reason,
                machine_key(machine),
                ex,
            )
