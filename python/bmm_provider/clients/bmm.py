"""
An asynchronous client for the NVIDIA Bare Metal Manager (BMM) REST API,
limited to the three instance operations the machine actuator needs:
create, get and delete.

BmmClient is the abstract capability the actuator depends on; AsyncBmmClient
is the aiohttp implementation built from a BmmCredentials triple.
"""

from __future__ import annotations

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type
from urllib.parse import quote

import aiohttp

from bmm_provider.errors import BmmApiError
from bmm_provider.models.bmm_api import (
    BmmCredentials,
    BmmResponse,
    Instance,
    InstanceCreateRequest,
    InstanceDeleteRequest,
)
from bmm_provider.models.validator import validate_type


class BmmClient(ABC):
    """
    Instance operations of the BMM REST API.

    Each method returns a BmmResponse when the server answered (whatever the
    status code) and raises BmmApiError when no usable answer arrived.
    """

    @abstractmethod
    async def create_instance(
        self, org: str, body: InstanceCreateRequest
    ) -> BmmResponse:
        """POST an instance; the payload is set on 201."""

    @abstractmethod
    async def get_instance(
        self,
        org: str,
        instance_id: uuid.UUID,
        params: Optional[Dict[str, str]] = None,
    ) -> BmmResponse:
        """GET an instance; the payload is set on 200."""

    @abstractmethod
    async def delete_instance(
        self, org: str, instance_id: uuid.UUID, body: InstanceDeleteRequest
    ) -> BmmResponse:
        """DELETE an instance; only the status code is meaningful."""


class AsyncBmmClient(BmmClient):
    """aiohttp-based BmmClient. Use as an async context manager."""

    def __init__(self, credentials: BmmCredentials, verify_ssl: bool = True) -> None:
        """
        Initialize the AsyncBmmClient.

        Args:
            credentials (BmmCredentials): endpoint, org name and bearer token.
            verify_ssl (bool): Verify the endpoint's TLS certificate.
        """
        self._endpoint = credentials.endpoint.rstrip("/")
        self._token = credentials.token
        self._verify_ssl = verify_ssl
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> AsyncBmmClient:
        """Async context manager entry, creates the aiohttp session."""
        self._session = aiohttp.ClientSession(
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/json",
            }
        )
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        """Async context manager exit, closes the aiohttp session."""
        if self._session:
            await self._session.close()
        self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("AsyncBmmClient used outside 'async with'.")
        return self._session

    def _instance_url(self, org: str, instance_id: Optional[uuid.UUID] = None) -> str:
        url = f"{self._endpoint}/v2/org/{quote(org, safe='')}/carbide/instance"
        return f"{url}/{instance_id}" if instance_id else url

    async def _request(
        self,
        method: str,
        url: str,
        *,
        success_status: Optional[int],
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> BmmResponse:
        session = self._ensure_session()
        try:
            async with session.request(
                method, url, json=json_body, params=params, ssl=self._verify_ssl
            ) as resp:
                if success_status is None or resp.status != success_status:
                    return BmmResponse(status_code=resp.status)
                try:
                    raw_js = await resp.json(content_type=None)
                except ValueError as ex:
                    raise BmmApiError(
                        f"{method} {url} returned a non-JSON body", resp.status
                    ) from ex
                status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as ex:
            raise BmmApiError(f"{method} {url} failed: {ex}") from ex
        except ValueError as ex:
            # aiohttp rejects malformed URLs and header values before sending.
            raise BmmApiError(f"{method} {url} could not be sent: {ex}") from ex

        if raw_js is None:
            return BmmResponse(status_code=status)
        try:
            instance = validate_type(raw_js, Instance, what="instance")
        except ValueError as ex:
            raise BmmApiError(f"{method} {url}: {ex}", status) from ex
        return BmmResponse(status_code=status, instance=instance)

    async def create_instance(
        self, org: str, body: InstanceCreateRequest
    ) -> BmmResponse:
        return await self._request(
            "POST",
            self._instance_url(org),
            success_status=201,
            json_body=body.to_wire(),
        )

    async def get_instance(
        self,
        org: str,
        instance_id: uuid.UUID,
        params: Optional[Dict[str, str]] = None,
    ) -> BmmResponse:
        return await self._request(
            "GET",
            self._instance_url(org, instance_id),
            success_status=200,
            params=params,
        )

    async def delete_instance(
        self, org: str, instance_id: uuid.UUID, body: InstanceDeleteRequest
    ) -> BmmResponse:
        return await self._request(
            "DELETE",
            self._instance_url(org, instance_id),
            success_status=None,
            json_body=body.to_wire(),
        )
