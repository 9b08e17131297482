"""
bmm_provider/actuators/machine.py

The machine actuator: create, exists, update and delete a BMM instance for
one Machine document.

The actuator holds no per-Machine state. Unless a BmmClient was injected,
every call resolves credentials from the Secret named in the providerSpec
and opens a fresh client that is closed when the call returns. Remote
failures are raised to the caller; nothing is retried here.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from bmm_provider.clients.bmm import AsyncBmmClient, BmmClient
from bmm_provider.errors import (
    BmmApiError,
    CredentialsUnavailable,
    DeleteFailed,
    EmptyCreateResponse,
    InstanceNotProvisioned,
    InvalidIdentifier,
)
from bmm_provider.models.bmm_api import (
    BmmCredentials,
    Instance,
    InstanceCreateRequest,
    InstanceDeleteRequest,
    InterfaceCreateRequest,
)
from bmm_provider.models.machine import MachineAddress, ProviderSpec, ProviderStatus
from bmm_provider.models.provider_id import encode_provider_id
from bmm_provider.utils.events import EventRecorder, EventType
from bmm_provider.utils.machine_doc import (
    get_provider_id,
    get_provider_spec,
    get_provider_status,
    machine_key,
    machine_name,
    set_provider_id,
    set_provider_status,
)
from bmm_provider.utils.machine_store import MachineStore

logger = logging.getLogger(__name__)

ADDRESS_TYPE_INTERNAL = "InternalIP"
REQUIRED_SECRET_KEYS = ("endpoint", "orgName", "token")
# 204: deleted, 404: already gone.
DELETE_SUCCESS_CODES = (204, 404)

ClientFactory = Callable[[BmmCredentials], AsyncBmmClient]


def _parse_uuid(field: str, value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as ex:
        raise InvalidIdentifier(field, value) from ex


def build_instance_request(name: str, spec: ProviderSpec) -> InstanceCreateRequest:
    """
    Translate a ProviderSpec into the create-instance request body.

    The primary subnet becomes the first, virtual interface; additional
    subnets follow in order with their own isPhysical flag. Optional fields
    are only set when present in the spec.

    Raises:
        InvalidIdentifier: If any UUID-valued field fails to parse.
    """
    interfaces = [
        InterfaceCreateRequest(
            subnet_id=_parse_uuid("subnetId", spec.subnet_id), is_physical=False
        )
    ]
    interfaces += [
        InterfaceCreateRequest(
            subnet_id=_parse_uuid("additionalSubnetIds.subnetId", extra.subnet_id),
            is_physical=extra.is_physical,
        )
        for extra in spec.additional_subnet_ids
    ]

    request = InstanceCreateRequest(
        name=name,
        tenant_id=_parse_uuid("tenantId", spec.tenant_id),
        vpc_id=_parse_uuid("vpcId", spec.vpc_id),
        interfaces=interfaces,
        phone_home_enabled=True,
    )

    if spec.instance_type_id:
        request.instance_type_id = _parse_uuid("instanceTypeId", spec.instance_type_id)
    if spec.machine_id:
        request.machine_id = spec.machine_id
    if spec.allow_unhealthy_machine:
        request.allow_unhealthy_machine = True
    if spec.user_data:
        request.user_data = spec.user_data
    if spec.ssh_key_group_ids:
        request.ssh_key_group_ids = [
            _parse_uuid("sshKeyGroupIds", key_group)
            for key_group in spec.ssh_key_group_ids
        ]
    if spec.labels:
        request.labels = dict(spec.labels)

    return request


def instance_addresses(instance: Instance) -> List[MachineAddress]:
    """Every IP on every interface, tagged InternalIP."""
    return [
        MachineAddress(type=ADDRESS_TYPE_INTERNAL, address=ip)
        for ip in instance.ip_addresses()
    ]


class Actuator:
    """
    Performs the four lifecycle operations against the BMM REST platform.

    Args:
        store (MachineStore): Persists Machines and reads the credentials Secret.
        recorder (Optional[EventRecorder]): Receives Created/Deleted/Failed* events.
        bmm_client (Optional[BmmClient]): Injected client, bypassing credential
            resolution. Intended for tests.
        org_name (Optional[str]): Organization used with the injected client.
        client_factory (ClientFactory): Builds a client from resolved credentials.
    """

    def __init__(
        self,
        store: MachineStore,
        recorder: Optional[EventRecorder] = None,
        *,
        bmm_client: Optional[BmmClient] = None,
        org_name: Optional[str] = None,
        client_factory: ClientFactory = AsyncBmmClient,
    ) -> None:
        self._store = store
        self._recorder = recorder
        self._bmm_client = bmm_client
        self._org_name = org_name or ""
        self._client_factory = client_factory

    # ------------------------------
    # Helpers
    # ------------------------------
    async def _event(
        self, machine: Dict[str, Any], event_type: EventType, reason: str, message: str
    ) -> None:
        if self._recorder is not None:
            await self._recorder.record(machine, event_type, reason, message)

    async def resolve_credentials(self, spec: ProviderSpec) -> BmmCredentials:
        """
        Read endpoint, orgName and token from the referenced Secret.

        Values are stripped of surrounding whitespace; files loaded with
        'kubectl create secret --from-file' usually end in a newline.

        Raises:
            CredentialsUnavailable: If the Secret is missing or unreadable, or
                one of the keys is missing, empty or contains control characters.
        """
        ref = spec.credentials_secret
        try:
            data = await self._store.get_secret_data(ref.name, ref.namespace)
        except ValueError as ex:
            raise CredentialsUnavailable(
                f"credentials secret {ref.namespace}/{ref.name} is unreadable: {ex}"
            ) from ex
        if data is None:
            raise CredentialsUnavailable(
                f"credentials secret {ref.namespace}/{ref.name} not found"
            )

        values = {key: (data.get(key) or "").strip() for key in REQUIRED_SECRET_KEYS}
        missing = [key for key, value in values.items() if not value]
        if missing:
            raise CredentialsUnavailable(
                f"secret {ref.namespace}/{ref.name} is missing "
                + ", ".join(f"'{key}'" for key in missing)
                + " field"
            )
        garbled = [
            key for key, value in values.items() if any(not c.isprintable() for c in value)
        ]
        if garbled:
            raise CredentialsUnavailable(
                f"secret {ref.namespace}/{ref.name} has control characters in "
                + ", ".join(f"'{key}'" for key in garbled)
            )
        return BmmCredentials(
            endpoint=values["endpoint"],
            org_name=values["orgName"],
            token=values["token"],
        )

    @asynccontextmanager
    async def _client(self, spec: ProviderSpec) -> AsyncIterator[Tuple[BmmClient, str]]:
        """Yield (client, org name) for the duration of one operation."""
        if self._bmm_client is not None:
            yield self._bmm_client, self._org_name
            return
        credentials = await self.resolve_credentials(spec)
        async with self._client_factory(credentials) as client:
            yield client, credentials.org_name

    @staticmethod
    def _recorded_instance_id(status: ProviderStatus) -> Optional[uuid.UUID]:
        if not status.instance_id:
            return None
        return _parse_uuid("instanceId", status.instance_id)

    # ------------------------------
    # Lifecycle operations
    # ------------------------------
    async def create(self, machine: Dict[str, Any]) -> None:
        """
        Provision a new instance and record its status and provider ID.

        Raises:
            InvalidProviderSpec, InvalidIdentifier: Bad spec; no remote call is made.
            CredentialsUnavailable: Secret missing or incomplete.
            BmmApiError: The create call failed in transport.
            EmptyCreateResponse: The platform answered without an instance.
        """
        spec = get_provider_spec(machine)
        request = build_instance_request(machine_name(machine), spec)

        async with self._client(spec) as (client, org_name):
            try:
                resp = await client.create_instance(org_name, request)
            except BmmApiError as ex:
                await self._event(
                    machine,
                    EventType.WARNING,
                    "FailedCreate",
                    f"Failed to create instance: {ex}",
                )
                raise

        instance = resp.instance
        if instance is None:
            await self._event(
                machine,
                EventType.WARNING,
                "FailedCreate",
                "Create instance returned no data",
            )
            raise EmptyCreateResponse(resp.status_code)

        status = ProviderStatus(
            instance_id=str(instance.id),
            machine_id=instance.machine_id,
            instance_state=instance.status,
            addresses=instance_addresses(instance),
        )
        set_provider_status(machine, status)
        await self._store.update_machine_status(machine)

        provider_id = encode_provider_id(
            org_name, spec.tenant_id, spec.site_id, instance.id
        )
        set_provider_id(machine, provider_id)
        await self._store.update_machine(machine)

        logger.info("Created instance %s for machine %s", instance.id, machine_key(machine))
        await self._event(
            machine, EventType.NORMAL, "Created", f"Created instance {instance.id}"
        )

    async def exists(self, machine: Dict[str, Any]) -> bool:
        """
        Whether the recorded instance still exists on the platform.

        A Machine without a recorded instance id is reported absent without
        any remote call. A failed read is also reported as absent.
        """
        status = get_provider_status(machine)
        instance_id = self._recorded_instance_id(status)
        if instance_id is None:
            return False

        spec = get_provider_spec(machine)
        async with self._client(spec) as (client, org_name):
            try:
                resp = await client.get_instance(org_name, instance_id)
            except BmmApiError as ex:
                logger.warning(
                    "Treating instance %s of machine %s as absent: %s",
                    instance_id,
                    machine_key(machine),
                    ex,
                )
                return False
        return resp.instance is not None

    async def update(self, machine: Dict[str, Any]) -> None:
        """
        Refresh status.providerStatus from the platform, and write
        spec.providerID if it is still unset. No mutating remote call is made.

        Raises:
            InstanceNotProvisioned: No instance id is recorded.
            BmmApiError: The read failed or returned no instance.
        """
        status = get_provider_status(machine)
        instance_id = self._recorded_instance_id(status)
        if instance_id is None:
            raise InstanceNotProvisioned(
                f"instance ID not set in provider status of machine {machine_key(machine)}"
            )

        spec = get_provider_spec(machine)
        async with self._client(spec) as (client, org_name):
            resp = await client.get_instance(org_name, instance_id)

        instance = resp.instance
        if instance is None:
            raise BmmApiError(
                f"get instance returned no data, status code: {resp.status_code}",
                resp.status_code,
            )

        if instance.status is not None:
            status.instance_state = instance.status
        if instance.machine_id is not None:
            status.machine_id = instance.machine_id
        status.addresses = instance_addresses(instance)

        set_provider_status(machine, status)
        await self._store.update_machine_status(machine)

        # create records the status before the provider ID; a failed second
        # write there leaves the ID to be filled in here.
        if get_provider_id(machine) is None:
            provider_id = encode_provider_id(
                org_name, spec.tenant_id, spec.site_id, instance_id
            )
            set_provider_id(machine, provider_id)
            await self._store.update_machine(machine)
            logger.info(
                "Restored provider ID %s on machine %s", provider_id, machine_key(machine)
            )

        logger.debug(
            "Refreshed instance %s of machine %s: state=%s",
            instance_id,
            machine_key(machine),
            status.instance_state,
        )

    async def delete(self, machine: Dict[str, Any]) -> None:
        """
        Deprovision the recorded instance. Without a recorded instance id this
        is a no-op. Clearing the status and the finalizer is left to the caller.

        Raises:
            BmmApiError: The delete call failed in transport.
            DeleteFailed: The platform answered with a status other than 204/404.
        """
        status = get_provider_status(machine)
        instance_id = self._recorded_instance_id(status)
        if instance_id is None:
            return

        spec = get_provider_spec(machine)
        async with self._client(spec) as (client, org_name):
            try:
                resp = await client.delete_instance(
                    org_name, instance_id, InstanceDeleteRequest()
                )
            except BmmApiError as ex:
                await self._event(
                    machine,
                    EventType.WARNING,
                    "FailedDelete",
                    f"Failed to delete instance: {ex}",
                )
                raise

        if resp.status_code not in DELETE_SUCCESS_CODES:
            await self._event(
                machine,
                EventType.WARNING,
                "FailedDelete",
                f"Delete instance returned unexpected status: {resp.status_code}",
            )
            raise DeleteFailed(resp.status_code)

        logger.info("Deleted instance %s for machine %s", instance_id, machine_key(machine))
        await self._event(
            machine, EventType.NORMAL, "Deleted", f"Deleted instance {instance_id}"
        )
