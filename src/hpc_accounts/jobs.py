"""Live queue and node inventory aggregation (squeue / sinfo)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .common import UnknownUserError, run, split_pipe_rows, to_int

SQUEUE_FIELDS = ["user", "account", "state", "nodes", "cpus", "partition", "reason"]
SQUEUE_FORMAT = "%u|%a|%T|%D|%C|%P|%r"
SINFO_FIELDS = ["node", "cpus", "partition", "state"]
SINFO_FORMAT = "%N|%c|%P|%T"

RUNNING_STATES = {"R", "RUNNING"}
PENDING_STATES = {"PD", "PENDING"}

# pending reason -> category
REASON_ORDER = ("Priority", "Dependency", "CpuLimit", "Held")
REASON_CATEGORIES = {
    "Resources": "Priority",
    "Priority": "Priority",
    "Dependency": "Dependency",
    "AssocGrpCpuLimit": "CpuLimit",
    "AssocGrpCPURunMinutesLimit": "CpuLimit",
    "JobHeldUser": "Held",
    "JobHeldAdmin": "Held",
}


def classify_reason(reason: Optional[str]) -> Optional[str]:
    """Map a pending reason to its category, None for uncategorized reasons."""
    return REASON_CATEGORIES.get((reason or "").strip().strip("()"))


@dataclass
class JobRecord:
    user: str
    account: str
    state: str
    nodes: int = 0
    cpus: int = 0
    partition: str = ""
    reason: str = ""

    @property
    def is_running(self) -> bool:
        return self.state.upper() in RUNNING_STATES

    @property
    def is_pending(self) -> bool:
        return self.state.upper() in PENDING_STATES


@dataclass
class NodeRecord:
    name: str
    cpus: int
    partition: str
    state: str


@dataclass
class Counts:
    count: int = 0
    cpus: int = 0

    def add(self, cpus: int) -> None:
        self.count += 1
        self.cpus += cpus


@dataclass
class Tally:
    running: Counts = field(default_factory=Counts)
    idle: Counts = field(default_factory=Counts)
    reasons: Dict[str, Counts] = field(default_factory=lambda: {r: Counts() for r in REASON_ORDER})

    def add(self, job: JobRecord, category: Optional[str]) -> None:
        if job.is_running:
            self.running.add(job.cpus)
        else:
            self.idle.add(job.cpus)
            if category is not None:
                self.reasons[category].add(job.cpus)


@dataclass
class JobSummary:
    # account -> user -> tally
    by_account: Dict[str, Dict[str, Tally]] = field(default_factory=dict)
    account_totals: Dict[str, Tally] = field(default_factory=dict)
    total: Tally = field(default_factory=Tally)
    reasons: bool = False
    show_total: bool = True

    def add(self, job: JobRecord) -> None:
        category = classify_reason(job.reason) if (self.reasons and job.is_pending) else None
        users = self.by_account.setdefault(job.account, {})
        users.setdefault(job.user, Tally()).add(job, category)
        self.account_totals.setdefault(job.account, Tally()).add(job, category)
        self.total.add(job, category)


# ---------- Parsing ----------
def split_partitions(partitions: Optional[str]) -> List[str]:
    if not partitions:
        return []
    return [p.strip() for p in partitions.split(",") if p.strip()]


def parse_squeue(out: str) -> List[JobRecord]:
    return [
        JobRecord(
            user=d["user"],
            account=d["account"],
            state=d["state"].upper(),
            nodes=to_int(d["nodes"]),
            cpus=to_int(d["cpus"]),
            partition=d["partition"],
            reason=d["reason"],
        )
        for d in split_pipe_rows(out, SQUEUE_FIELDS)
    ]


def normalize_node_state(state: str) -> str:
    """Strip sinfo flag suffixes like 'idle*' or 'drained~'."""
    return state.strip().rstrip("*~#!%$@^-+").upper() or "UNKNOWN"


def parse_sinfo(out: str) -> List[NodeRecord]:
    return [
        NodeRecord(
            name=d["node"],
            cpus=to_int(d["cpus"]),
            partition=d["partition"].rstrip("*"),
            state=normalize_node_state(d["state"]),
        )
        for d in split_pipe_rows(out, SINFO_FIELDS)
    ]


# ---------- Aggregation ----------
def in_partitions(partition: str, selected: Set[str]) -> bool:
    if not selected:
        return True
    return any(p.strip() in selected for p in partition.split(","))


def aggregate_jobs(
    jobs: Iterable[JobRecord],
    reasons: bool = False,
    user: Optional[str] = None,
    account: Optional[str] = None,
    partitions: Sequence[str] = (),
    known_users: Optional[Set[str]] = None,
) -> JobSummary:
    """Tally running and pending jobs per account and user in one pass.

    Raises UnknownUserError when ``user`` is not in ``known_users``.
    With an ``account`` filter the grand total is not shown.
    """
    if user and known_users is not None and user not in known_users:
        raise UnknownUserError(f"user {user} does not exist")
    selected = set(partitions)
    summary = JobSummary(reasons=reasons, show_total=account is None)
    for job in jobs:
        if not (job.is_running or job.is_pending):
            continue
        if user and job.user != user:
            continue
        if account and job.account != account:
            continue
        if not in_partitions(job.partition, selected):
            continue
        summary.add(job)
    return summary


def summarize_nodes(nodes: Iterable[NodeRecord], partitions: Sequence[str] = ()) -> Dict[str, Counts]:
    """Node and CPU counts per node state; a node listed in several partitions counts once."""
    selected = set(partitions)
    seen: Set[str] = set()
    states: Dict[str, Counts] = {}
    for node in nodes:
        if not in_partitions(node.partition, selected):
            continue
        if node.name in seen:
            continue
        seen.add(node.name)
        states.setdefault(node.state, Counts()).add(node.cpus)
    return states


def total_counts(states: Dict[str, Counts]) -> Counts:
    total = Counts()
    for c in states.values():
        total.count += c.count
        total.cpus += c.cpus
    return total


# ---------- squeue / sinfo ----------
def fetch_jobs(partitions: Sequence[str] = ()) -> List[JobRecord]:
    cmd = ["squeue", "-h", "-t", "RUNNING,PENDING", "-o", SQUEUE_FORMAT]
    if partitions:
        cmd += ["-p", ",".join(partitions)]
    return parse_squeue(run(cmd))


def fetch_nodes(partitions: Sequence[str] = ()) -> List[NodeRecord]:
    cmd = ["sinfo", "-h", "-N", "-o", SINFO_FORMAT]
    if partitions:
        cmd += ["-p", ",".join(partitions)]
    return parse_sinfo(run(cmd))
