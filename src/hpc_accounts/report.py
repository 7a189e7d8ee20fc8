"""Fixed-width and comma-separated rendering of job and node summaries."""

from __future__ import annotations

import csv
import sys
from typing import Any, Dict, List, Optional, TextIO

from .jobs import REASON_ORDER, Counts, JobSummary, Tally, total_counts

GRAND_TOTAL = "GRAND_TOTAL"
ACCT_TOTAL = "ACCT_TOTAL"
ALL_ACCOUNTS = "ALL"
INFO_COLUMN = "Further info"

BASE_COLUMNS = ["Username", "Account", "Running jobs", "Running CPUs", "Idle jobs", "Idle CPUs"]
NODE_COLUMNS = ["State", "Nodes", "CPUs"]


def job_columns(reasons: bool) -> List[str]:
    cols = list(BASE_COLUMNS)
    if reasons:
        for r in REASON_ORDER:
            cols += [f"{r} jobs", f"{r} CPUs"]
    cols.append(INFO_COLUMN)
    return cols


def tally_row(username: str, account: str, tally: Tally, reasons: bool, info: str = "") -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "Username": username,
        "Account": account,
        "Running jobs": tally.running.count,
        "Running CPUs": tally.running.cpus,
        "Idle jobs": tally.idle.count,
        "Idle CPUs": tally.idle.cpus,
    }
    if reasons:
        for r in REASON_ORDER:
            row[f"{r} jobs"] = tally.reasons[r].count
            row[f"{r} CPUs"] = tally.reasons[r].cpus
    row[INFO_COLUMN] = info
    return row


def totals_info(tally: Tally) -> str:
    return f"Running+Idle={tally.running.cpus + tally.idle.cpus} CPUs"


def sort_key(row: Dict[str, Any], label: str):
    return (-row["Running jobs"], -row["Idle jobs"], row[label], row["Account"])


def job_summary_rows(
    summary: JobSummary,
    full_names: Optional[Dict[str, str]] = None,
    totals_only: bool = False,
) -> List[Dict[str, Any]]:
    """Grand total, then account totals, then per-user rows, each block sorted.

    Blocks are ordered by running jobs (desc), idle jobs (desc) and label.
    """
    full_names = full_names or {}
    rows: List[Dict[str, Any]] = []
    if summary.show_total:
        rows.append(tally_row(GRAND_TOTAL, ALL_ACCOUNTS, summary.total, summary.reasons, totals_info(summary.total)))

    acct_rows = [
        tally_row(ACCT_TOTAL, account, tally, summary.reasons, totals_info(tally))
        for account, tally in summary.account_totals.items()
    ]
    rows += sorted(acct_rows, key=lambda r: sort_key(r, "Account"))
    if totals_only:
        return rows

    user_rows = [
        tally_row(user, account, tally, summary.reasons, full_names.get(user, ""))
        for account, users in summary.by_account.items()
        for user, tally in users.items()
    ]
    rows += sorted(user_rows, key=lambda r: sort_key(r, "Username"))
    return rows


def node_summary_rows(states: Dict[str, Counts]) -> List[Dict[str, Any]]:
    rows = [{"State": state, "Nodes": c.count, "CPUs": c.cpus} for state, c in states.items()]
    rows.sort(key=lambda r: (-r["Nodes"], r["State"]))
    total = total_counts(states)
    rows.append({"State": "TOTAL", "Nodes": total.count, "CPUs": total.cpus})
    return rows


# ---------- Output ----------
def render_table(rows: List[Dict[str, Any]], cols: List[str], out: Optional[TextIO] = None) -> None:
    out = out or sys.stdout
    w = {c: len(c) for c in cols}
    for row in rows:
        for c in cols:
            w[c] = max(w[c], len(str(row.get(c, ""))))
    hdr = "  ".join(f"{c:<{w[c]}}" for c in cols).rstrip()
    print(hdr, file=out)
    print("-" * len(hdr), file=out)
    for row in rows:
        cells = []
        for c in cols:
            v = row.get(c, "")
            # numbers right aligned, text left aligned
            cells.append(f"{v:>{w[c]}}" if isinstance(v, int) else f"{v:<{w[c]}}")
        print("  ".join(cells).rstrip(), file=out)


def write_csv(rows: List[Dict[str, Any]], cols: List[str], out: Optional[TextIO] = None) -> None:
    w = csv.DictWriter(out or sys.stdout, fieldnames=cols, extrasaction="ignore", lineterminator="\n")
    w.writeheader()
    for row in rows:
        w.writerow(row)


def render(rows: List[Dict[str, Any]], cols: List[str], csv_output: bool = False, out: Optional[TextIO] = None) -> None:
    if csv_output:
        write_csv(rows, cols, out)
    else:
        render_table(rows, cols, out)
