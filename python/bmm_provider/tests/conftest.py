from __future__ import annotations

from typing import Any, Dict

import pytest

from bmm_provider.actuators.machine import Actuator
from bmm_provider.controllers.machine import MachineReconciler
from bmm_provider.models.settings import MACHINE_FINALIZER, ControllerSettings
from bmm_provider.tests.fakes import (
    CREDENTIALS,
    ORG,
    FakeBmmClient,
    FakeMachineStore,
    FakeRecorder,
    make_machine,
)


@pytest.fixture()
def store() -> FakeMachineStore:
    s = FakeMachineStore()
    s.secrets[("default", "nvidia-bmm-creds")] = dict(CREDENTIALS)
    return s


@pytest.fixture()
def recorder() -> FakeRecorder:
    return FakeRecorder()


@pytest.fixture()
def bmm_client() -> FakeBmmClient:
    return FakeBmmClient()


@pytest.fixture()
def actuator(
    store: FakeMachineStore, recorder: FakeRecorder, bmm_client: FakeBmmClient
) -> Actuator:
    return Actuator(store, recorder, bmm_client=bmm_client, org_name=ORG)


@pytest.fixture()
def settings() -> ControllerSettings:
    return ControllerSettings(namespace="default")


@pytest.fixture()
def reconciler(
    store: FakeMachineStore, actuator: Actuator, settings: ControllerSettings
) -> MachineReconciler:
    return MachineReconciler(store, actuator, settings)


@pytest.fixture()
def machine(store: FakeMachineStore) -> Dict[str, Any]:
    """A Machine with the finalizer attached, also present in the store."""
    doc = make_machine(finalizers=[MACHINE_FINALIZER])
    store.add_machine(doc)
    return doc
