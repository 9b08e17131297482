#!/usr/bin/env python3
"""
bmm_provider/cli/controller.py

CLI for the machine controller:
  - run        : run the reconciliation daemon (or a single pass with --once)
  - reconcile  : reconcile one Machine once and print the result as JSON
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Callable, Coroutine, List, Optional

from pydantic import ValidationError

from bmm_provider.actuators.machine import Actuator
from bmm_provider.controllers.machine import MachineReconciler
from bmm_provider.daemon import run_controller
from bmm_provider.errors import BmmProviderError
from bmm_provider.models.settings import ControllerSettings
from bmm_provider.utils.async_command_runner import CommandError
from bmm_provider.utils.events import KubectlEventRecorder
from bmm_provider.utils.machine_store import KubectlMachineStore


def _build_settings(args: argparse.Namespace) -> ControllerSettings:
    """Build ControllerSettings from parsed CLI args, exiting on invalid values."""
    try:
        return ControllerSettings(
            namespace=None if args.all_namespaces else args.namespace,
            requeue_after_seconds=args.requeue_after,
            create_requeue_seconds=args.create_requeue_after,
            error_requeue_seconds=args.error_requeue_after,
            max_error_requeue_seconds=args.max_error_requeue_after,
            poll_interval_seconds=args.poll_interval,
            kubectl=args.kubectl,
        )
    except ValidationError as exc:
        print(f"Invalid settings: {exc}", file=sys.stderr)
        sys.exit(2)


def _build_reconciler(settings: ControllerSettings) -> MachineReconciler:
    store = KubectlMachineStore(kubectl=settings.kubectl)
    recorder = KubectlEventRecorder(settings.event_source, kubectl=settings.kubectl)
    return MachineReconciler(store, Actuator(store, recorder), settings)


#
# Subcommand handlers
#
async def run_daemon(args: argparse.Namespace) -> None:
    """Run the controller loop until cancelled."""
    settings = _build_settings(args)
    reconciler = _build_reconciler(settings)
    await run_controller(settings, reconciler.store, reconciler, once=args.once)


async def run_reconcile(args: argparse.Namespace) -> None:
    """
    Reconcile a single Machine and print the ReconcileResult.

    Raises SystemExit on error.
    """
    settings = _build_settings(args)
    reconciler = _build_reconciler(settings)
    try:
        result = await reconciler.reconcile(args.namespace, args.name)
    except (BmmProviderError, CommandError) as exc:
        print(f"Error: reconcile of {args.namespace}/{args.name} failed: {exc}", file=sys.stderr)
        sys.exit(1)
    print(result.model_dump_json(indent=2))


def _add_common_args(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--namespace",
        default="openshift-machine-api",
        help="Namespace of the Machines (default: openshift-machine-api).",
    )
    subparser.add_argument(
        "--kubectl", default="kubectl", help="kubectl executable (default: kubectl)."
    )
    subparser.add_argument("--requeue-after", type=float, default=30.0)
    subparser.add_argument("--create-requeue-after", type=float, default=10.0)
    subparser.add_argument("--error-requeue-after", type=float, default=30.0)
    subparser.add_argument(
        "--max-error-requeue-after",
        type=float,
        default=300.0,
        help="Cap for the doubling error requeue delay (default: 300).",
    )
    subparser.add_argument("--poll-interval", type=float, default=5.0)
    subparser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="NVIDIA BMM machine controller for the OpenShift Machine API."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    #
    # run
    #
    run_parser = subparsers.add_parser("run", help="Run the reconciliation loop.")
    _add_common_args(run_parser)
    run_parser.add_argument(
        "--all-namespaces",
        action="store_true",
        default=False,
        help="Watch Machines in every namespace.",
    )
    run_parser.add_argument(
        "--once",
        action="store_true",
        default=False,
        help="Run a single pass and exit.",
    )
    run_parser.set_defaults(func=run_daemon)

    #
    # reconcile
    #
    reconcile_parser = subparsers.add_parser(
        "reconcile", help="Reconcile one Machine once."
    )
    _add_common_args(reconcile_parser)
    reconcile_parser.add_argument("--name", required=True, help="Machine name.")
    reconcile_parser.set_defaults(func=run_reconcile, all_namespaces=False)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # The `args.func` is an async function, so we run it via asyncio
    func: Callable[[argparse.Namespace], Coroutine[Any, Any, None]] = args.func
    try:
        asyncio.run(func(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
