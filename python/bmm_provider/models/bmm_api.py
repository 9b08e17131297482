"""
bmm_provider/models/bmm_api.py

Request and response bodies of the BMM REST instance API, plus the
credentials triple used to reach it.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys and unset optionals omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class BmmCredentials(BaseModel):
    """
    API credentials read from the credentials Secret. Held for a single
    actuator call and never persisted.
    """

    endpoint: str
    org_name: str
    token: str = Field(..., repr=False)


class InterfaceCreateRequest(_ApiModel):
    subnet_id: uuid.UUID
    is_physical: bool = False


class InstanceCreateRequest(_ApiModel):
    """Body of POST /v2/org/{org}/carbide/instance."""

    name: str
    tenant_id: uuid.UUID
    vpc_id: uuid.UUID
    interfaces: List[InterfaceCreateRequest]
    instance_type_id: Optional[uuid.UUID] = None
    machine_id: Optional[str] = None
    allow_unhealthy_machine: Optional[bool] = None
    user_data: Optional[str] = None
    ssh_key_group_ids: Optional[List[uuid.UUID]] = None
    labels: Optional[Dict[str, str]] = None
    phone_home_enabled: bool = True


class InstanceDeleteRequest(_ApiModel):
    """Body of DELETE /v2/org/{org}/carbide/instance/{id}; empty today."""


class InstanceInterface(_ApiModel):
    subnet_id: Optional[uuid.UUID] = None
    is_physical: Optional[bool] = None
    ip_addresses: Optional[List[str]] = None


class Instance(_ApiModel):
    """An instance as returned by the BMM REST API.

    The status is the platform's state name (Pending, Provisioning, Ready,
    Terminating, ...), kept as a plain string.
    """

    id: uuid.UUID
    name: Optional[str] = None
    machine_id: Optional[str] = None
    status: Optional[str] = None
    interfaces: Optional[List[InstanceInterface]] = None

    def ip_addresses(self) -> List[str]:
        """Every IP address on every interface, in interface order."""
        return [
            ip
            for iface in self.interfaces or []
            for ip in iface.ip_addresses or []
        ]


class BmmResponse(BaseModel):
    """
    Outcome of a BMM REST call that reached the server.

    Attributes:
        status_code: HTTP status code.
        instance: Parsed instance payload, or None when the status was not
            the operation's success code or the body carried no instance.
    """

    status_code: int
    instance: Optional[Instance] = None


__all__ = [
    "BmmCredentials",
    "InterfaceCreateRequest",
    "InstanceCreateRequest",
    "InstanceDeleteRequest",
    "InstanceInterface",
    "Instance",
    "BmmResponse",
]
