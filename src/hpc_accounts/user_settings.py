#!/usr/bin/env python3
"""Synchronize Slurm user associations with UNIX accounts and a settings policy.

By default the corrective sacctmgr commands are only printed, one per line,
for review. With --execute (or SLURM_SYNC_EXECUTE=1) they are run through
``sacctmgr -i``.
"""

from __future__ import annotations

import argparse
import shlex
import subprocess
import sys
from collections import Counter
from typing import Iterable, List, Optional, Tuple

from .associations import load_observed_state
from .common import HpcAccountsError, error, require_tools, run
from .config import SyncConfig
from .directory import load_directory
from .policy import PolicyStore
from .reconcile import Action, Reconciler


def apply_actions(actions: Iterable[Action], execute: bool = False) -> Tuple[int, int]:
    """Print (dry run) or execute each action's command.

    A rejected command is reported and the remaining ones still run.
    Returns the number of commands applied and the number that failed.
    """
    applied = failed = 0
    for action in actions:
        command = action.command()
        if command is None:
            continue
        if execute:
            try:
                run(["sacctmgr", "-i"] + shlex.split(command))
            except subprocess.CalledProcessError as e:
                error(f"sacctmgr -i {command} failed with exit code {e.returncode}")
                failed += 1
                continue
        else:
            print(command)
        applied += 1
    return applied, failed


def summarize(actions: List[Action]) -> str:
    counts = Counter(a.kind.value for a in actions)
    return "  ".join(f"{kind}={counts.get(kind, 0)}" for kind in ("create", "modify", "delete"))


def build_plan(config: SyncConfig, policy_path: Optional[str] = None) -> List[Action]:
    directory = load_directory(config.min_uid)
    policy = PolicyStore.from_config(config, policy_path)
    observed = load_observed_state(set(directory.groups_by_name), cluster=config.cluster)
    return Reconciler(directory, policy, observed).plan()


# ---------- CLI ----------
def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(
        description="Compute sacctmgr commands that bring Slurm user settings in line with UNIX accounts and the settings policy."
    )
    ap.add_argument(
        "--config",
        metavar="PATH",
        help="Policy file with scope:key:value lines (default: $SLURM_SYNC_CONFIG or /etc/slurm/user_settings.conf)",
    )
    ap.add_argument(
        "--execute",
        action="store_true",
        help="Run the commands with sacctmgr -i instead of printing them.",
    )
    args = ap.parse_args(argv)

    try:
        config = SyncConfig.from_env()
    except HpcAccountsError as e:
        error(str(e))
        sys.exit(1)

    require_tools("sacctmgr")

    try:
        actions = build_plan(config, args.config)
        _, failed = apply_actions(actions, execute=args.execute or config.execute)
    except HpcAccountsError as e:
        error(str(e))
        sys.exit(1)
    except subprocess.CalledProcessError as e:
        error(f"command failed: {' '.join(e.cmd)}")
        sys.exit(1)

    print(f"# actions: {summarize(actions)}", file=sys.stderr)
    if failed:
        error(f"{failed} sacctmgr command(s) failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
