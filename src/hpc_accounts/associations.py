"""Observed accounting state: Slurm associations as reported by sacctmgr."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from .common import notice, run, split_pipe_rows
from .policy import SettingKey, comparable

ASSOC_FIELDS = [
    "Cluster",
    "Account",
    "User",
    "Partition",
    "Share",
    "GrpJobs",
    "GrpTRES",
    "GrpSubmit",
    "GrpWall",
    "GrpTRESMins",
    "MaxJobs",
    "MaxTRES",
    "MaxTRESPerNode",
    "MaxSubmit",
    "MaxWall",
    "MaxTRESMins",
    "QOS",
    "DefQOS",
    "GrpTRESRunMins",
]
# sacctmgr spells the format field DefaultQOS but prints the header "Def QOS"
ASSOC_FORMAT = [("DefaultQOS" if f == "DefQOS" else f) for f in ASSOC_FIELDS]

COLUMN_KEYS = {
    "Share": SettingKey.FAIRSHARE,
    "GrpTRES": SettingKey.GRPTRES,
    "GrpTRESMins": SettingKey.GRPTRESMINS,
    "MaxTRES": SettingKey.MAXTRES,
    "MaxTRESPerNode": SettingKey.MAXTRESPERNODE,
    "MaxTRESMins": SettingKey.MAXTRESMINS,
    "GrpTRESRunMins": SettingKey.GRPTRESRUNMINS,
    "QOS": SettingKey.QOS,
    "DefQOS": SettingKey.DEFAULTQOS,
}


@dataclass
class ObservedRecord:
    account: str
    user: str
    settings: Dict[SettingKey, str] = field(default_factory=dict)
    cluster: str = ""
    partition: str = ""
    default_account: str = ""

    def get(self, key: SettingKey) -> str:
        return self.settings.get(key, "")


@dataclass
class ObservedState:
    # account-level rows (empty User column); only checked against the UNIX
    # groups, never used to resolve settings
    accounts: Dict[str, ObservedRecord] = field(default_factory=dict)
    # user -> account -> row
    users: Dict[str, Dict[str, ObservedRecord]] = field(default_factory=dict)

    def record_for(self, user: str) -> Optional[ObservedRecord]:
        """The user's row under its default account, or None if the user has no rows."""
        rows = self.users.get(user)
        if not rows:
            return None
        first = next(iter(rows.values()))
        return rows.get(first.default_account, first)


def normalize_header(name: str) -> str:
    return name.replace(" ", "").strip()


def parse_associations(
    out: str,
    known_groups: Optional[Set[str]] = None,
    cluster: Optional[str] = None,
    default_accounts: Optional[Dict[str, str]] = None,
) -> ObservedState:
    """Parse pipe-delimited association rows into an ObservedState.

    A leading ``Cluster|Account|...`` header line is honored when present,
    otherwise the columns are taken to be ASSOC_FIELDS. Rows of the root
    account are dropped, as are account-level rows for accounts that have
    no UNIX group (when ``known_groups`` is given).
    """
    lines = [ln for ln in out.splitlines() if ln.strip()]
    fields: List[str] = ASSOC_FIELDS
    if lines and lines[0].strip().startswith("Cluster|"):
        fields = [normalize_header(h) for h in lines[0].strip().split("|")]
        if fields and fields[-1] == "":
            fields = fields[:-1]
        lines = lines[1:]

    state = ObservedState()
    for data in split_pipe_rows("\n".join(lines), fields):
        account = data.get("Account", "").lower()
        user = data.get("User", "")
        if not account or account == "root":
            continue
        if cluster and data.get("Cluster", "").lower() != cluster.lower():
            continue
        settings = {}
        for column, key in COLUMN_KEYS.items():
            value = comparable(key, data.get(column, ""))
            if value:
                settings[key] = value
        record = ObservedRecord(
            account=account,
            user=user,
            settings=settings,
            cluster=data.get("Cluster", ""),
            partition=data.get("Partition", ""),
        )
        if not user:
            if known_groups is not None and account not in known_groups:
                notice(f"Slurm account {account} has no corresponding UNIX group, ignored")
                continue
            state.accounts.setdefault(account, record)
            continue
        rows = state.users.setdefault(user, {})
        existing = rows.get(account)
        # partition-less association wins over partition specific ones
        if existing is None or (existing.partition and not record.partition):
            rows[account] = record

    default_accounts = default_accounts or {}
    for user, rows in state.users.items():
        default = default_accounts.get(user, "").lower() or next(iter(rows))
        for record in rows.values():
            record.default_account = default
    return state


def parse_default_accounts(out: str) -> Dict[str, str]:
    return {
        data["User"]: data["DefaultAccount"].lower()
        for data in split_pipe_rows(out, ["User", "DefaultAccount"])
        if data["User"]
    }


# ---------- sacctmgr ----------
def fetch_associations(cluster: Optional[str] = None) -> str:
    cmd = ["sacctmgr", "-nP", "list", "associations", f"format={','.join(ASSOC_FORMAT)}"]
    if cluster:
        cmd.append(f"cluster={cluster}")
    return run(cmd)


def fetch_default_accounts() -> Dict[str, str]:
    return parse_default_accounts(run(["sacctmgr", "-nP", "show", "user", "format=User,DefaultAccount"]))


def load_observed_state(known_groups: Optional[Set[str]] = None, cluster: Optional[str] = None) -> ObservedState:
    return parse_associations(
        fetch_associations(cluster),
        known_groups=known_groups,
        cluster=cluster,
        default_accounts=fetch_default_accounts(),
    )
