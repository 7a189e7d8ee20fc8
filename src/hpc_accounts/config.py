"""Run configuration for the user settings synchronizer."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .common import HpcAccountsError

DEFAULT_CONFIG_FILE = "/etc/slurm/user_settings.conf"
DEFAULT_MIN_UID = 1002
DEFAULT_FAIRSHARE = "2"
DEFAULT_GRPTRES = "cpu=1200"
DEFAULT_GRPTRESRUNMINS = "cpu=3000000"

TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SyncConfig:
    min_uid: int = DEFAULT_MIN_UID
    default_fairshare: str = DEFAULT_FAIRSHARE
    default_grptres: str = DEFAULT_GRPTRES
    default_grptresrunmins: str = DEFAULT_GRPTRESRUNMINS
    config_file: str = DEFAULT_CONFIG_FILE
    execute: bool = False
    cluster: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SyncConfig":
        """Build a config from SLURM_SYNC_* environment variables."""
        env = os.environ if environ is None else environ
        raw_uid = env.get("SLURM_SYNC_MINUID", "").strip()
        if raw_uid:
            try:
                min_uid = int(raw_uid)
            except ValueError:
                raise HpcAccountsError(f"SLURM_SYNC_MINUID must be an integer, got {raw_uid!r}")
        else:
            min_uid = DEFAULT_MIN_UID
        return cls(
            min_uid=min_uid,
            default_fairshare=env.get("SLURM_SYNC_FAIRSHARE") or DEFAULT_FAIRSHARE,
            default_grptres=env.get("SLURM_SYNC_GRPTRES") or DEFAULT_GRPTRES,
            default_grptresrunmins=env.get("SLURM_SYNC_GRPTRESRUNMINS") or DEFAULT_GRPTRESRUNMINS,
            config_file=env.get("SLURM_SYNC_CONFIG") or DEFAULT_CONFIG_FILE,
            execute=env.get("SLURM_SYNC_EXECUTE", "").strip().lower() in TRUE_VALUES,
            cluster=env.get("SLURM_SYNC_CLUSTER") or None,
        )
