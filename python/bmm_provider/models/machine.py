"""
bmm_provider/models/machine.py

Pydantic models for the two subtrees of a Machine resource owned by this
provider:
  - ProviderSpec    (spec.providerSpec.value)
  - ProviderStatus  (status.providerStatus)

Field names follow the camelCase wire format through aliases; Python code
uses the snake_case attribute names.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic.functional_validators import model_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CredentialsSecretReference(_CamelModel):
    """Locates the kubernetes Secret holding endpoint, orgName and token."""

    name: str = Field(..., description="Secret name.")
    namespace: str = Field(..., description="Secret namespace.")


class AdditionalSubnet(_CamelModel):
    """An extra network interface attached to the instance."""

    subnet_id: str
    is_physical: bool = False


class ProviderSpec(_CamelModel):
    """
    Desired state of a BMM instance.

    Exactly one of instance_type_id or machine_id selects the hardware;
    setting both is rejected.

    Attributes:
        site_id: BMM site UUID.
        tenant_id: BMM tenant UUID.
        vpc_id: VPC UUID.
        subnet_id: Primary subnet UUID.
        instance_type_id: Instance type UUID.
        machine_id: Specific machine to provision on.
        allow_unhealthy_machine: Permit provisioning on an unhealthy machine.
        additional_subnet_ids: Extra interfaces, in order.
        user_data: cloud-init user data.
        ssh_key_group_ids: SSH key group UUIDs.
        labels: Labels applied to the BMM instance.
        credentials_secret: Reference to the API credentials Secret.
    """

    site_id: str
    tenant_id: str
    vpc_id: str
    subnet_id: str
    instance_type_id: Optional[str] = None
    machine_id: Optional[str] = None
    allow_unhealthy_machine: bool = False
    additional_subnet_ids: List[AdditionalSubnet] = Field(default_factory=list)
    user_data: Optional[str] = None
    ssh_key_group_ids: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)
    credentials_secret: CredentialsSecretReference

    @model_validator(mode="after")
    def check_exclusivity(self) -> ProviderSpec:
        """
        Ensure instance_type_id and machine_id are not both set.
        """
        if self.instance_type_id and self.machine_id:
            raise ValueError("instanceTypeId and machineId are mutually exclusive.")
        return self


class MachineAddress(_CamelModel):
    """A network address reported for the instance."""

    type: str
    address: str


class ProviderStatus(_CamelModel):
    """
    Observed state of the BMM instance, mirrored onto the Machine.

    Conditions are kept as raw JSON objects; this provider never interprets them.
    """

    instance_id: Optional[str] = None
    machine_id: Optional[str] = None
    instance_state: Optional[str] = None
    addresses: List[MachineAddress] = Field(default_factory=list)
    conditions: List[Dict[str, Any]] = Field(default_factory=list)


class MachineLifecycle(str, Enum):
    """
    Lifecycle tag stored on the Machine as an annotation. Only the reconciler
    advances it.
    """

    ACTIVE = "active"
    DELETING_PENDING_CLEANUP = "deleting-pending-cleanup"
    REMOVED = "removed"


__all__ = [
    "CredentialsSecretReference",
    "AdditionalSubnet",
    "ProviderSpec",
    "MachineAddress",
    "ProviderStatus",
    "MachineLifecycle",
]
