"""
bmm_provider/utils/machine_doc.py

Typed access to the parts of an opaque Machine document (a JSON object as
returned by 'kubectl get -o json') that this provider reads or writes:

  - spec.providerSpec.value   -> ProviderSpec   (decode only)
  - status.providerStatus     -> ProviderStatus (decode and encode)
  - spec.providerID           -> str
  - metadata.finalizers, metadata.deletionTimestamp, metadata.annotations

Every other key of the document is left untouched.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from bmm_provider.errors import InvalidProviderSpec, InvalidProviderStatus
from bmm_provider.models.machine import MachineLifecycle, ProviderSpec, ProviderStatus
from bmm_provider.models.validator import validate_type

MachineDoc = Dict[str, Any]


def _nested(doc: MachineDoc, *keys: str) -> Optional[Any]:
    node: Any = doc
    for key in keys:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def _ensure_dict(doc: MachineDoc, *keys: str) -> Dict[str, Any]:
    node = doc
    for key in keys:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    return node


# ------------------------------
# providerSpec / providerStatus
# ------------------------------
def get_provider_spec(doc: MachineDoc) -> ProviderSpec:
    """
    Decode spec.providerSpec.value into a ProviderSpec.

    Raises:
        InvalidProviderSpec: If the subtree is absent, a required field is
            missing, or instanceTypeId and machineId are both set.
    """
    raw = _nested(doc, "spec", "providerSpec", "value")
    if raw is None:
        raise InvalidProviderSpec(
            f"spec.providerSpec.value not found on machine {machine_key(doc)}"
        )
    return validate_type(
        raw, ProviderSpec, error_cls=InvalidProviderSpec, what="providerSpec"
    )


def get_provider_status(doc: MachineDoc) -> ProviderStatus:
    """
    Decode status.providerStatus. A missing subtree is a new Machine and
    yields an empty ProviderStatus.

    Raises:
        InvalidProviderStatus: If the subtree exists but does not validate.
    """
    raw = _nested(doc, "status", "providerStatus")
    if raw is None:
        return ProviderStatus()
    return validate_type(
        raw, ProviderStatus, error_cls=InvalidProviderStatus, what="providerStatus"
    )


def set_provider_status(doc: MachineDoc, status: ProviderStatus) -> None:
    """Replace status.providerStatus wholesale with the encoded status."""
    _ensure_dict(doc, "status")["providerStatus"] = status.model_dump(
        by_alias=True, exclude_none=True, mode="json"
    )


def get_provider_id(doc: MachineDoc) -> Optional[str]:
    value = _nested(doc, "spec", "providerID")
    return value if isinstance(value, str) and value else None


def set_provider_id(doc: MachineDoc, provider_id: str) -> None:
    _ensure_dict(doc, "spec")["providerID"] = provider_id


# ------------------------------
# metadata
# ------------------------------
def machine_name(doc: MachineDoc) -> str:
    return str(_nested(doc, "metadata", "name") or "")


def machine_namespace(doc: MachineDoc) -> str:
    return str(_nested(doc, "metadata", "namespace") or "")


def machine_key(doc: MachineDoc) -> str:
    """'namespace/name', used in log lines and errors."""
    return f"{machine_namespace(doc)}/{machine_name(doc)}"


def deletion_requested(doc: MachineDoc) -> bool:
    return bool(_nested(doc, "metadata", "deletionTimestamp"))


def get_finalizers(doc: MachineDoc) -> List[str]:
    value = _nested(doc, "metadata", "finalizers")
    return [f for f in value if isinstance(f, str)] if isinstance(value, list) else []


def has_finalizer(doc: MachineDoc, finalizer: str) -> bool:
    return finalizer in get_finalizers(doc)


def add_finalizer(doc: MachineDoc, finalizer: str) -> bool:
    """Append the finalizer if missing. Returns True if the document changed."""
    current = get_finalizers(doc)
    if finalizer in current:
        return False
    _ensure_dict(doc, "metadata")["finalizers"] = current + [finalizer]
    return True


def remove_finalizer(doc: MachineDoc, finalizer: str) -> bool:
    """Drop every occurrence of the finalizer. Returns True if the document changed."""
    current = get_finalizers(doc)
    if finalizer not in current:
        return False
    _ensure_dict(doc, "metadata")["finalizers"] = [f for f in current if f != finalizer]
    return True


def get_lifecycle(doc: MachineDoc, annotation: str) -> Optional[MachineLifecycle]:
    """Read the lifecycle tag; unknown or missing values read as None."""
    raw = _nested(doc, "metadata", "annotations", annotation)
    try:
        return MachineLifecycle(raw) if raw else None
    except ValueError:
        return None


def set_lifecycle(doc: MachineDoc, annotation: str, value: MachineLifecycle) -> bool:
    """Write the lifecycle tag. Returns True if the document changed."""
    if get_lifecycle(doc, annotation) == value:
        return False
    _ensure_dict(doc, "metadata", "annotations")[annotation] = value.value
    return True
