#!/usr/bin/env python3
"""Summarize running and pending Slurm jobs per user and account."""

from __future__ import annotations

import argparse
import subprocess
import sys
from typing import List, Optional

from .common import HpcAccountsError, error, require_tools
from .directory import load_full_names
from .jobs import aggregate_jobs, fetch_jobs, fetch_nodes, split_partitions, summarize_nodes
from .report import NODE_COLUMNS, job_columns, job_summary_rows, node_summary_rows, render


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Slurm job summary: running and idle (pending) jobs and CPUs per user and account."
    )
    ap.add_argument("-u", "--user", help="Show only jobs of USER")
    ap.add_argument("-a", "--account", help="Show only jobs of ACCOUNT (the grand total is omitted)")
    ap.add_argument("-A", "--account-totals", action="store_true", help="Show only account total rows")
    ap.add_argument("-C", "--csv", action="store_true", help="Comma-separated output for spreadsheets")
    ap.add_argument("-p", "--partition", metavar="LIST", help="Comma-separated list of partitions")
    ap.add_argument(
        "-r",
        "--reasons",
        action="store_true",
        help="Add pending reason columns: Priority, Dependency, CpuLimit, Held",
    )
    return ap


# ---------- CLI ----------
def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    require_tools("squeue", "sinfo")
    partitions = split_partitions(args.partition)

    try:
        full_names = load_full_names()
        jobs = fetch_jobs(partitions)
        summary = aggregate_jobs(
            jobs,
            reasons=args.reasons,
            user=args.user,
            account=args.account,
            partitions=partitions,
            known_users=set(full_names),
        )
        nodes = fetch_nodes(partitions)
    except HpcAccountsError as e:
        error(str(e))
        sys.exit(1)
    except subprocess.CalledProcessError as e:
        error(f"command failed: {' '.join(e.cmd)}")
        sys.exit(1)

    # titles stay off stdout in CSV mode
    titles = sys.stderr if args.csv else sys.stdout
    print("Node states summary:", file=titles)
    render(node_summary_rows(summarize_nodes(nodes, partitions)), NODE_COLUMNS, csv_output=args.csv)
    if not args.csv:
        print()
    print("Job summary:", file=titles)
    rows = job_summary_rows(summary, full_names, totals_only=args.account_totals)
    render(rows, job_columns(args.reasons), csv_output=args.csv)


if __name__ == "__main__":
    main()
