"""
bmm_provider/utils/k8s.py

Provides utilities to interact with Kubernetes objects via 'kubectl':
reading Secrets, getting/listing/replacing arbitrary objects (Machines) and
creating objects such as Events.

All functions take the kubectl executable name so tests and alternative
installs can substitute it.
"""

from __future__ import annotations

import json
import base64
from typing import Any, Dict, List, Optional

from bmm_provider.utils.async_command_runner import run_command, CommandError
from bmm_provider.models.validator import validate_type


def _namespace_args(namespace: Optional[str]) -> List[str]:
    return ["-n", namespace] if namespace else ["-A"]


async def get_k8s_secret_data(
    secret_name: str,
    namespace: str,
    *,
    kubectl: str = "kubectl",
) -> Optional[Dict[str, str]]:
    """
    Retrieve the key-value data of a Kubernetes Secret (decoded from base64).

    If the secret does not exist, we return None. Otherwise we parse the JSON
    to read each data field. The data values are base64-decoded prior to returning.

    Args:
        secret_name (str): The K8s Secret name.
        namespace (str):   The K8s namespace.
        kubectl (str):     The kubectl executable.

    Returns:
        A dict of key => plaintext value if found, else None if the Secret is missing.

    Raises:
        CommandError: If 'kubectl' fails for reasons other than 'NotFound'.
        ValueError: If a data value does not decode to UTF-8 text.
    """
    cmd = [kubectl, "-n", namespace, "get", "secret", secret_name, "-o", "json"]
    try:
        raw_json = await run_command(command=cmd, sensitive=True)
    except CommandError as ex:
        if ex.not_found:
            return None
        raise

    secret_obj = validate_type(json.loads(raw_json), Dict[str, Any])
    b64_data = secret_obj.get("data") or {}
    decoded: Dict[str, str] = {}
    for key, val in b64_data.items():
        try:
            decoded[key] = base64.b64decode(val).decode("utf-8")
        except ValueError as ex:
            raise ValueError(
                f"Secret {namespace}/{secret_name} key {key!r} is not base64-encoded UTF-8"
            ) from ex
    return decoded


async def get_k8s_object(
    resource: str,
    name: str,
    namespace: str,
    *,
    kubectl: str = "kubectl",
) -> Optional[Dict[str, Any]]:
    """
    Fetch a single namespaced object as JSON.

    Args:
        resource (str): Resource type, e.g. "machines.machine.openshift.io".
        name (str): Object name.
        namespace (str): Object namespace.

    Returns:
        The object as a dict, or None if it does not exist.

    Raises:
        CommandError: If 'kubectl' fails for reasons other than 'NotFound'.
    """
    cmd = [kubectl, "-n", namespace, "get", resource, name, "-o", "json"]
    try:
        raw_json = await run_command(command=cmd)
    except CommandError as ex:
        if ex.not_found:
            return None
        raise
    return validate_type(json.loads(raw_json), Dict[str, Any])


async def list_k8s_objects(
    resource: str,
    namespace: Optional[str] = None,
    *,
    kubectl: str = "kubectl",
) -> List[Dict[str, Any]]:
    """
    List objects of a resource type in one namespace, or in all namespaces
    when namespace is None.
    """
    cmd = [kubectl, *_namespace_args(namespace), "get", resource, "-o", "json"]
    parsed = validate_type(json.loads(await run_command(command=cmd)), Dict[str, Any])
    return validate_type(parsed.get("items") or [], List[Dict[str, Any]])


async def replace_k8s_object(
    obj: Dict[str, Any],
    *,
    subresource: Optional[str] = None,
    kubectl: str = "kubectl",
) -> Dict[str, Any]:
    """
    Replace an object with 'kubectl replace -f -'. The object must carry its
    metadata.resourceVersion; a stale version fails with a conflict.

    Args:
        obj (Dict[str, Any]): The full object.
        subresource (Optional[str]): e.g. "status" to write only the status subresource.

    Returns:
        The object as stored by the API server (new resourceVersion).

    Raises:
        CommandError: On conflict or any other kubectl failure.
    """
    cmd = [kubectl, "replace", "-f", "-", "-o", "json"]
    if subresource:
        cmd.append(f"--subresource={subresource}")
    raw_json = await run_command(command=cmd, input_data=json.dumps(obj))
    return validate_type(json.loads(raw_json), Dict[str, Any])


async def create_k8s_object(
    manifest: Dict[str, Any],
    *,
    kubectl: str = "kubectl",
) -> Dict[str, Any]:
    """
    Create an object with 'kubectl create -f -' (unlike 'apply', this honours
    metadata.generateName).

    Raises:
        CommandError: If 'kubectl create' fails.
    """
    cmd = [kubectl, "create", "-f", "-", "-o", "json"]
    raw_json = await run_command(command=cmd, input_data=json.dumps(manifest))
    return validate_type(json.loads(raw_json), Dict[str, Any])
