"""
bmm_provider/models/settings.py

Controller configuration: watched namespace, finalizer and annotation names,
requeue and poll intervals, and the kubectl executable. Built from CLI
arguments by bmm_provider.cli.controller.
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field
from pydantic.functional_validators import model_validator

MACHINE_FINALIZER = "machine.openshift.io/nvidia-bmm"
LIFECYCLE_ANNOTATION = "bmm.nvidia.com/lifecycle"


class ControllerSettings(BaseModel):
    namespace: Optional[str] = Field(
        default="openshift-machine-api",
        description="Namespace to watch for Machines; None watches all namespaces.",
    )
    finalizer: str = MACHINE_FINALIZER
    lifecycle_annotation: str = LIFECYCLE_ANNOTATION
    requeue_after_seconds: float = 30.0
    create_requeue_seconds: float = 10.0
    error_requeue_seconds: float = 30.0
    # Consecutive failures double the error delay up to this cap.
    max_error_requeue_seconds: float = 300.0
    poll_interval_seconds: float = 5.0
    event_source: str = "nvidia-bmm-machine-controller"
    kubectl: str = "kubectl"

    @model_validator(mode="after")
    def check_intervals(self) -> ControllerSettings:
        """
        Ensure every requeue and poll interval is strictly positive, and the
        error backoff cap is not below its starting delay.
        """
        intervals = {
            "requeue_after_seconds": self.requeue_after_seconds,
            "create_requeue_seconds": self.create_requeue_seconds,
            "error_requeue_seconds": self.error_requeue_seconds,
            "max_error_requeue_seconds": self.max_error_requeue_seconds,
            "poll_interval_seconds": self.poll_interval_seconds,
        }
        bad = [name for name, value in intervals.items() if value <= 0]
        if bad:
            raise ValueError(f"Intervals must be positive: {', '.join(bad)}")
        if self.max_error_requeue_seconds < self.error_requeue_seconds:
            raise ValueError(
                "max_error_requeue_seconds must be >= error_requeue_seconds."
            )
        return self
