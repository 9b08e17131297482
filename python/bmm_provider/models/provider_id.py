"""
bmm_provider/models/provider_id.py

The provider ID ties a Machine to exactly one BMM instance:

    nvidia-bmm://<org>/<tenant>/<site>/<instance-uuid>

The legacy three-segment form (nvidia-bmm://<org>/<site>/<instance-uuid>)
is still accepted when parsing, with an empty tenant. Encoding always emits
the four-segment form.
"""

from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict

from bmm_provider.errors import (
    InvalidInstanceID,
    InvalidSegmentCount,
    MalformedIdentifier,
)

PROVIDER_PREFIX = "nvidia-bmm://"


class ProviderID(BaseModel):
    """A parsed provider ID.

    Attributes:
        org_name: BMM organization name.
        tenant_name: Tenant segment ("" for legacy IDs).
        site_name: Site segment.
        instance_id: The BMM instance UUID.
    """

    model_config = ConfigDict(frozen=True)

    org_name: str
    tenant_name: str
    site_name: str
    instance_id: uuid.UUID

    def encode(self) -> str:
        return (
            f"{PROVIDER_PREFIX}{self.org_name}/{self.tenant_name}/"
            f"{self.site_name}/{self.instance_id}"
        )

    def __str__(self) -> str:
        return self.encode()


def encode_provider_id(
    org_name: str, tenant_name: str, site_name: str, instance_id: uuid.UUID
) -> str:
    """Build the four-segment provider ID string."""
    return ProviderID(
        org_name=org_name,
        tenant_name=tenant_name,
        site_name=site_name,
        instance_id=instance_id,
    ).encode()


def _parse_instance_id(raw: str, provider_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(raw)
    except ValueError as ex:
        raise InvalidInstanceID(
            f"invalid instance ID {raw!r} in provider ID {provider_id!r}"
        ) from ex


def parse_provider_id(value: str) -> ProviderID:
    """
    Parse a provider ID string in either the four-segment or legacy form.

    Segments other than the instance ID are taken verbatim, empty strings
    included.

    Args:
        value (str): The provider ID, e.g. "nvidia-bmm://acme/t1/site1/<uuid>".

    Returns:
        ProviderID: The parsed identifier.

    Raises:
        MalformedIdentifier: If the "nvidia-bmm://" prefix is missing.
        InvalidSegmentCount: If the remainder is not 3 or 4 segments.
        InvalidInstanceID: If the last segment is not a UUID.
    """
    if not value.startswith(PROVIDER_PREFIX):
        raise MalformedIdentifier(
            f"invalid provider ID prefix, expected {PROVIDER_PREFIX!r}: {value}"
        )

    parts = value[len(PROVIDER_PREFIX) :].split("/")

    if len(parts) == 3:
        org, site, raw_id = parts
        tenant = ""
    elif len(parts) == 4:
        org, tenant, site, raw_id = parts
    else:
        raise InvalidSegmentCount(
            f"invalid provider ID format, expected 3 or 4 segments: {value}"
        )

    return ProviderID(
        org_name=org,
        tenant_name=tenant,
        site_name=site,
        instance_id=_parse_instance_id(raw_id, value),
    )
