"""Shared helpers: process invocation, diagnostics and error types."""

from __future__ import annotations

import shutil
import subprocess
import sys
from typing import Dict, Iterator, List, Optional


class HpcAccountsError(Exception):
    """Base class for fatal errors that abort a run."""


class DirectoryError(HpcAccountsError):
    """The user/group directory could not be read."""


class UnknownUserError(HpcAccountsError):
    """A requested username is not known to the directory."""


# ---------- Diagnostics ----------
def notice(msg: str) -> None:
    print(f"NOTICE: {msg}", file=sys.stderr)


def warning(msg: str) -> None:
    print(f"WARNING: {msg}", file=sys.stderr)


def error(msg: str) -> None:
    print(f"ERROR: {msg}", file=sys.stderr)


# ---------- Process invocation ----------
def run(cmd: List[str]) -> str:
    """Run a command and capture stderr to avoid noisy Slurm warnings."""
    return subprocess.check_output(cmd, text=True, errors="ignore", stderr=subprocess.PIPE)


def require_tools(*tools: str) -> None:
    """Exit with an error when any of the given commands is missing from PATH."""
    for tool in tools:
        if not shutil.which(tool):
            error(f"{tool} not found in PATH.")
            sys.exit(1)


def split_pipe_rows(out: str, fields: List[str]) -> Iterator[Dict[str, str]]:
    """Yield dicts for pipe-delimited lines, tolerating a trailing '|'.

    Lines with fewer fields than expected are skipped.
    """
    for raw in out.splitlines():
        line = raw.strip()
        if not line:
            continue
        parts = line.split("|")
        if len(parts) < len(fields):
            continue
        yield {k: parts[i].strip() for i, k in enumerate(fields)}


def to_int(val: Optional[str]) -> int:
    if not val:
        return 0
    val = val.strip()
    return int(val) if val.isdigit() else 0
