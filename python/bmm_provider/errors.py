"""
bmm_provider/errors.py

Exception hierarchy shared by the provider-ID codec, the spec/status codec,
the actuator and the reconciler.

  - InputError:        the resource itself is wrong; retrying will not help.
  - CredentialsUnavailable: the credentials secret or one of its keys is missing.
  - RemoteError:       the BMM REST platform failed or could not be reached.
  - ConsistencyError:  the remote platform or the resource is in an unexpected state.
"""

from __future__ import annotations

from typing import Optional


class BmmProviderError(Exception):
    """Base class for every error raised by bmm_provider."""


class InputError(BmmProviderError, ValueError):
    """The Machine resource carries invalid or incomplete data."""


class MalformedIdentifier(InputError):
    """A provider ID does not start with the expected scheme prefix."""


class InvalidSegmentCount(InputError):
    """A provider ID does not split into 3 or 4 '/'-separated segments."""


class InvalidInstanceID(InputError):
    """The final segment of a provider ID is not a UUID."""


class InvalidIdentifier(InputError):
    """A UUID-valued field (subnet, tenant, VPC, ...) failed to parse.

    Attributes:
        field (str): The providerSpec/providerStatus field that failed.
        value (str): The offending value.
    """

    def __init__(self, field: str, value: str) -> None:
        super().__init__(f"failed to parse {field} {value!r} as a UUID")
        self.field = field
        self.value = value


class InvalidProviderSpec(InputError):
    """spec.providerSpec.value is missing or does not validate."""


class InvalidProviderStatus(InputError):
    """status.providerStatus exists but does not validate."""


class CredentialsUnavailable(BmmProviderError):
    """The credentials secret is missing or lacks a required key."""


class RemoteError(BmmProviderError):
    """Base class for failures talking to the BMM REST platform."""


class BmmApiError(RemoteError):
    """A transport failure or unexpected response from the BMM REST API.

    Attributes:
        status_code (Optional[int]): HTTP status, or None when no response arrived.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DeleteFailed(RemoteError):
    """Delete instance returned a status other than 204 or 404."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"delete instance returned unexpected status: {status_code}")
        self.status_code = status_code


class ConsistencyError(BmmProviderError):
    """Base class for state mismatches between the resource and the platform."""


class EmptyCreateResponse(ConsistencyError):
    """Create instance returned without an instance payload."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"create instance returned no data, status code: {status_code}")
        self.status_code = status_code


class InstanceNotProvisioned(ConsistencyError):
    """An operation needs status.providerStatus.instanceId but none is recorded."""
