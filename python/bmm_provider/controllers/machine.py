"""
bmm_provider/controllers/machine.py

Reconciles one Machine per call:

  1) Machine gone                      => nothing to do.
  2) No finalizer, not deleting        => attach finalizer, persist, requeue now.
     No remote call happens until the finalizer is durable.
  3) Finalizer, not deleting           => exists? update + slow requeue
                                                : create + short requeue.
  4) Deletion requested with finalizer => delete instance, clear status,
                                          drop finalizer, persist.
     On failure the finalizer stays and the error propagates.

The phase is derived from the stored Machine on every call; the reconciler
keeps no memory between calls. The caller guarantees at most one reconcile
per Machine at a time.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel

from bmm_provider.actuators.machine import Actuator
from bmm_provider.models.machine import MachineLifecycle, ProviderStatus
from bmm_provider.models.settings import ControllerSettings
from bmm_provider.utils.machine_doc import (
    add_finalizer,
    deletion_requested,
    get_provider_status,
    has_finalizer,
    machine_key,
    remove_finalizer,
    set_lifecycle,
    set_provider_status,
)
from bmm_provider.utils.machine_store import MachineStore

logger = logging.getLogger(__name__)


class MachinePhase(str, Enum):
    ABSENT = "Absent"
    PRESENT_NO_FINALIZER = "PresentNoFinalizer"
    NOT_PROVISIONED = "NotProvisioned"
    PROVISIONED = "Provisioned"
    DELETING = "Deleting"


class ReconcileResult(BaseModel):
    """
    What the caller should do next with this Machine.

    Attributes:
        requeue: Reconcile again immediately.
        requeue_after: Reconcile again after this many seconds.
    """

    requeue: bool = False
    requeue_after: Optional[float] = None


def classify(machine: Optional[Dict[str, Any]], finalizer: str) -> MachinePhase:
    """Derive the lifecycle phase from the stored Machine."""
    if machine is None:
        return MachinePhase.ABSENT
    if deletion_requested(machine):
        return MachinePhase.DELETING
    if not has_finalizer(machine, finalizer):
        return MachinePhase.PRESENT_NO_FINALIZER
    if get_provider_status(machine).instance_id:
        return MachinePhase.PROVISIONED
    return MachinePhase.NOT_PROVISIONED


def _cleared_status(status: ProviderStatus) -> ProviderStatus:
    return ProviderStatus(conditions=status.conditions)


class MachineReconciler:
    """Sequences Actuator calls from the Machine's lifecycle phase."""

    def __init__(
        self,
        store: MachineStore,
        actuator: Actuator,
        settings: Optional[ControllerSettings] = None,
    ) -> None:
        self.store = store
        self.actuator = actuator
        self.settings = settings or ControllerSettings()

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """
        Run one reconciliation pass for namespace/name.

        Returns:
            ReconcileResult: When to come back.

        Raises:
            BmmProviderError: Any actuator failure, unchanged.
            CommandError: If reading or persisting the Machine fails.
        """
        machine = await self.store.get_machine(namespace, name)
        phase = classify(machine, self.settings.finalizer)
        logger.debug("Machine %s/%s is in phase %s", namespace, name, phase.value)

        if machine is None:
            return ReconcileResult()

        logger.info("Reconciling machine %s", machine_key(machine))
        if phase is MachinePhase.DELETING:
            return await self._reconcile_delete(machine)
        return await self._reconcile_normal(machine, phase)

    async def _reconcile_normal(
        self, machine: Dict[str, Any], phase: MachinePhase
    ) -> ReconcileResult:
        settings = self.settings

        if phase is MachinePhase.PRESENT_NO_FINALIZER:
            add_finalizer(machine, settings.finalizer)
            set_lifecycle(machine, settings.lifecycle_annotation, MachineLifecycle.ACTIVE)
            await self.store.update_machine(machine)
            logger.info("Added finalizer to machine %s", machine_key(machine))
            return ReconcileResult(requeue=True)

        if not await self.actuator.exists(machine):
            logger.info("Creating instance for machine %s", machine_key(machine))
            await self.actuator.create(machine)
            return ReconcileResult(requeue_after=settings.create_requeue_seconds)

        await self.actuator.update(machine)
        logger.info("Reconciled machine %s", machine_key(machine))
        return ReconcileResult(requeue_after=settings.requeue_after_seconds)

    async def _reconcile_delete(self, machine: Dict[str, Any]) -> ReconcileResult:
        settings = self.settings
        if not has_finalizer(machine, settings.finalizer):
            logger.debug("Machine %s has no finalizer, nothing to clean up", machine_key(machine))
            return ReconcileResult()

        if set_lifecycle(
            machine,
            settings.lifecycle_annotation,
            MachineLifecycle.DELETING_PENDING_CLEANUP,
        ):
            await self.store.update_machine(machine)

        logger.info("Deleting instance for machine %s", machine_key(machine))
        await self.actuator.delete(machine)

        status = get_provider_status(machine)
        if status.instance_id:
            set_provider_status(machine, _cleared_status(status))
            await self.store.update_machine_status(machine)

        remove_finalizer(machine, settings.finalizer)
        set_lifecycle(machine, settings.lifecycle_annotation, MachineLifecycle.REMOVED)
        await self.store.update_machine(machine)
        logger.info("Removed finalizer from machine %s", machine_key(machine))
        return ReconcileResult()
