"""
bmm_provider/cli/bmmctl.py

Entry point installed as 'bmmctl'. Dispatches to a CLI module:
  - controller : run or drive the machine controller
  - providerid : parse or build nvidia-bmm provider IDs

Usage: bmmctl <subcommand> [args...]
"""

import sys
import subprocess

SUBCOMMANDS = ("controller", "providerid")


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in SUBCOMMANDS:
        print(f"Usage: bmmctl {{{','.join(SUBCOMMANDS)}}} [args...]")
        sys.exit(1)

    subcommand = sys.argv[1]
    subcommand_args = sys.argv[2:]

    cmd = [sys.executable, "-m", f"bmm_provider.cli.{subcommand}"] + subcommand_args
    sys.exit(subprocess.call(cmd))
