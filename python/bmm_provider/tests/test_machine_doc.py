"""Tests for the typed accessors in bmm_provider.utils.machine_doc."""

import pytest

from bmm_provider.errors import InvalidProviderSpec, InvalidProviderStatus
from bmm_provider.models.machine import (
    MachineAddress,
    MachineLifecycle,
    ProviderStatus,
)
from bmm_provider.tests.fakes import SUBNET_ID, VALID_SPEC, make_machine
from bmm_provider.utils.machine_doc import (
    add_finalizer,
    deletion_requested,
    get_lifecycle,
    get_provider_id,
    get_provider_spec,
    get_provider_status,
    has_finalizer,
    machine_key,
    remove_finalizer,
    set_lifecycle,
    set_provider_id,
    set_provider_status,
)

FINALIZER = "machine.openshift.io/nvidia-bmm"


class TestProviderSpec:
    def test_decodes_required_and_defaults(self):
        spec = get_provider_spec(make_machine())
        assert spec.subnet_id == SUBNET_ID
        assert spec.credentials_secret.name == "nvidia-bmm-creds"
        assert spec.instance_type_id is None
        assert spec.allow_unhealthy_machine is False
        assert spec.additional_subnet_ids == []
        assert spec.labels == {}

    def test_decodes_optional_fields(self):
        value = dict(
            VALID_SPEC,
            machineId="machine-7",
            allowUnhealthyMachine=True,
            additionalSubnetIds=[{"subnetId": SUBNET_ID, "isPhysical": True}],
            userData="#cloud-config",
            sshKeyGroupIds=["a1b2c3d4-0000-4000-8000-000000000001"],
            labels={"role": "worker"},
        )
        spec = get_provider_spec(make_machine(value))
        assert spec.machine_id == "machine-7"
        assert spec.allow_unhealthy_machine is True
        assert spec.additional_subnet_ids[0].is_physical is True
        assert spec.user_data == "#cloud-config"
        assert spec.labels == {"role": "worker"}

    def test_missing_subtree(self):
        doc = make_machine()
        del doc["spec"]["providerSpec"]
        with pytest.raises(InvalidProviderSpec):
            get_provider_spec(doc)

    def test_missing_required_field(self):
        value = dict(VALID_SPEC)
        del value["vpcId"]
        with pytest.raises(InvalidProviderSpec):
            get_provider_spec(make_machine(value))

    def test_missing_credentials_secret(self):
        value = dict(VALID_SPEC)
        del value["credentialsSecret"]
        with pytest.raises(InvalidProviderSpec):
            get_provider_spec(make_machine(value))

    def test_instance_type_and_machine_are_exclusive(self):
        value = dict(
            VALID_SPEC,
            instanceTypeId="990e8400-e29b-41d4-a716-446655440004",
            machineId="machine-7",
        )
        with pytest.raises(InvalidProviderSpec, match="mutually exclusive"):
            get_provider_spec(make_machine(value))


class TestProviderStatus:
    def test_missing_status_is_empty(self):
        status = get_provider_status(make_machine())
        assert status == ProviderStatus()

    def test_round_trip_through_document(self):
        doc = make_machine()
        status = ProviderStatus(
            instance_id="3f8c2a1e-6b7d-4c2e-9a51-0d4e8f6b2c11",
            instance_state="Ready",
            addresses=[MachineAddress(type="InternalIP", address="10.0.0.5")],
            conditions=[{"type": "Ready", "status": "True"}],
        )
        set_provider_status(doc, status)
        raw = doc["status"]["providerStatus"]
        assert raw["instanceId"] == status.instance_id
        assert raw["instanceState"] == "Ready"
        assert "machineId" not in raw
        assert raw["addresses"] == [{"type": "InternalIP", "address": "10.0.0.5"}]
        assert get_provider_status(doc) == status

    def test_set_replaces_wholesale(self):
        doc = make_machine(provider_status={"instanceId": "x", "machineId": "m"})
        set_provider_status(doc, ProviderStatus(instance_state="Ready"))
        assert doc["status"]["providerStatus"] == {
            "instanceState": "Ready",
            "addresses": [],
            "conditions": [],
        }

    def test_invalid_status(self):
        doc = make_machine(provider_status={"addresses": "not-a-list"})
        with pytest.raises(InvalidProviderStatus):
            get_provider_status(doc)


class TestMetadata:
    def test_provider_id(self):
        doc = make_machine()
        assert get_provider_id(doc) is None
        set_provider_id(doc, "nvidia-bmm://o/t/s/id")
        assert doc["spec"]["providerID"] == "nvidia-bmm://o/t/s/id"
        assert get_provider_id(doc) == "nvidia-bmm://o/t/s/id"

    def test_finalizers(self):
        doc = make_machine()
        assert not has_finalizer(doc, FINALIZER)
        assert add_finalizer(doc, FINALIZER) is True
        assert add_finalizer(doc, FINALIZER) is False
        assert doc["metadata"]["finalizers"] == [FINALIZER]
        assert remove_finalizer(doc, FINALIZER) is True
        assert remove_finalizer(doc, FINALIZER) is False
        assert doc["metadata"]["finalizers"] == []

    def test_remove_keeps_foreign_finalizers(self):
        doc = make_machine(finalizers=["other/finalizer", FINALIZER])
        remove_finalizer(doc, FINALIZER)
        assert doc["metadata"]["finalizers"] == ["other/finalizer"]

    def test_deletion_requested(self):
        assert not deletion_requested(make_machine())
        assert deletion_requested(make_machine(deleting=True))

    def test_lifecycle_annotation(self):
        doc = make_machine()
        annotation = "bmm.nvidia.com/lifecycle"
        assert get_lifecycle(doc, annotation) is None
        assert set_lifecycle(doc, annotation, MachineLifecycle.ACTIVE) is True
        assert set_lifecycle(doc, annotation, MachineLifecycle.ACTIVE) is False
        assert doc["metadata"]["annotations"][annotation] == "active"
        doc["metadata"]["annotations"][annotation] = "bogus"
        assert get_lifecycle(doc, annotation) is None

    def test_machine_key(self):
        assert machine_key(make_machine(name="m1", namespace="ns")) == "ns/m1"
