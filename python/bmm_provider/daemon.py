"""
bmm_provider/daemon.py

The controller loop:
  1) List Machines in the watched namespace (or fail => K8s restarts the pod).
  2) Reconcile every Machine whose requeue time has come, one at a time, so a
     Machine never has two reconciliations in flight. A failure is contained
     to its own Machine.
  3) Schedule the next pass per Machine from the ReconcileResult:
       - requeue=True          => next pass
       - requeue_after=N       => N seconds from now
       - any error             => error_requeue_seconds, doubled per consecutive
                                  failure up to max_error_requeue_seconds
       - done                  => requeue_after_seconds from now (periodic resync)
  4) Sleep poll_interval_seconds => repeat.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, List, Optional, Tuple

from bmm_provider.controllers.machine import MachineReconciler, ReconcileResult
from bmm_provider.errors import BmmProviderError
from bmm_provider.models.settings import ControllerSettings
from bmm_provider.utils.async_command_runner import CommandError
from bmm_provider.utils.machine_doc import machine_name, machine_namespace
from bmm_provider.utils.machine_store import MachineStore

logger = logging.getLogger(__name__)

MachineRef = Tuple[str, str]


class RequeueSchedule:
    """
    Next due time per (namespace, name), on a monotonic clock, plus the
    count of consecutive failed reconciliations used for error backoff.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._due: Dict[MachineRef, float] = {}
        self._failures: Dict[MachineRef, int] = {}

    def sync(self, refs: List[MachineRef]) -> None:
        """Track newly listed Machines as due now; forget vanished ones."""
        now = self._clock()
        current = set(refs)
        self._due = {ref: self._due.get(ref, now) for ref in current}
        self._failures = {
            ref: count for ref, count in self._failures.items() if ref in current
        }

    def due(self) -> List[MachineRef]:
        now = self._clock()
        return sorted(ref for ref, at in self._due.items() if at <= now)

    def schedule(self, ref: MachineRef, delay: float) -> None:
        """Schedule after a successful reconcile; resets the failure count."""
        self._failures.pop(ref, None)
        self._due[ref] = self._clock() + delay

    def schedule_error(self, ref: MachineRef, base: float, cap: float) -> float:
        """
        Schedule after a failed reconcile: base, 2*base, 4*base, ... up to cap.

        Returns:
            float: The delay applied.
        """
        failures = self._failures.get(ref, 0)
        delay = min(base * (2 ** failures), cap)
        self._failures[ref] = failures + 1
        self._due[ref] = self._clock() + delay
        return delay

    def failures(self, ref: MachineRef) -> int:
        return self._failures.get(ref, 0)

    def next_due(self, ref: MachineRef) -> Optional[float]:
        return self._due.get(ref)


def delay_for(result: ReconcileResult, settings: ControllerSettings) -> float:
    if result.requeue:
        return 0.0
    if result.requeue_after is not None:
        return result.requeue_after
    return settings.requeue_after_seconds


async def run_pass(
    store: MachineStore,
    reconciler: MachineReconciler,
    schedule: RequeueSchedule,
    settings: ControllerSettings,
) -> int:
    """
    Run one pass over the due Machines.

    Returns:
        int: How many Machines were reconciled.

    Raises:
        CommandError: If listing Machines fails.
    """
    machines = await store.list_machines(settings.namespace)
    schedule.sync([(machine_namespace(m), machine_name(m)) for m in machines])

    due = schedule.due()
    for ref in due:
        namespace, name = ref
        try:
            result = await reconciler.reconcile(namespace, name)
        except (BmmProviderError, CommandError) as ex:
            delay = schedule.schedule_error(
                ref, settings.error_requeue_seconds, settings.max_error_requeue_seconds
            )
            logger.error(
                "Reconcile of machine %s/%s failed, retrying in %.0fs: %s",
                namespace,
                name,
                delay,
                ex,
            )
            continue
        except Exception:
            delay = schedule.schedule_error(
                ref, settings.error_requeue_seconds, settings.max_error_requeue_seconds
            )
            logger.exception(
                "Unexpected error reconciling machine %s/%s, retrying in %.0fs",
                namespace,
                name,
                delay,
            )
            continue
        schedule.schedule(ref, delay_for(result, settings))
    return len(due)


async def run_controller(
    settings: ControllerSettings,
    store: MachineStore,
    reconciler: MachineReconciler,
    *,
    once: bool = False,
) -> None:
    """Main daemon logic; see the module docstring."""
    schedule = RequeueSchedule()
    scope = settings.namespace or "all namespaces"
    logger.info("Machine controller starting, watching %s", scope)

    try:
        while True:
            count = await run_pass(store, reconciler, schedule, settings)
            logger.debug("Pass done, reconciled %d machine(s)", count)
            if once:
                return
            await asyncio.sleep(settings.poll_interval_seconds)
    except asyncio.CancelledError:
        logger.info("Machine controller shutting down (cancelled).")
        raise
