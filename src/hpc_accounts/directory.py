"""Load UNIX accounts and groups from the host identity service."""

from __future__ import annotations

import grp
import os
import pwd
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional, Set

from .common import DirectoryError, notice


@dataclass(frozen=True)
class Account:
    uid: int
    username: str
    gid: int
    full_name: str
    home_dir: str
    shell: str


@dataclass(frozen=True)
class Group:
    gid: int
    name: str


@dataclass
class Directory:
    accounts: Dict[str, Account] = field(default_factory=dict)
    groups_by_gid: Dict[int, Group] = field(default_factory=dict)
    groups_by_name: Dict[str, Group] = field(default_factory=dict)
    # every username in the passwd database, eligible or not
    known_users: Set[str] = field(default_factory=set)

    def group_of(self, account: Account) -> Optional[Group]:
        return self.groups_by_gid.get(account.gid)


def gecos_name(gecos: str) -> str:
    """First comma-separated GECOS field, the user's full name."""
    return (gecos or "").split(",", 1)[0].strip()


def is_nologin(shell: str) -> bool:
    return os.path.basename(shell or "").strip() == "nologin"


def load_full_names(passwd_entries: Optional[Iterable] = None) -> Dict[str, str]:
    """Map every username in the passwd database to its full name."""
    try:
        users = list(pwd.getpwall() if passwd_entries is None else passwd_entries)
    except (OSError, KeyError) as e:
        raise DirectoryError(f"cannot read user directory: {e}") from e
    return {p.pw_name: gecos_name(p.pw_gecos) for p in users}


def load_directory(
    min_uid: int,
    passwd_entries: Optional[Iterable] = None,
    group_entries: Optional[Iterable] = None,
    home_exists: Callable[[str], bool] = os.path.isdir,
) -> Directory:
    """Read passwd/group entries and keep the accounts eligible for Slurm.

    An account is eligible when its uid is at least ``min_uid``, its login
    shell is not nologin, its home directory exists and its primary group is
    known. Rejected accounts are reported with a notice.
    """
    try:
        users = list(pwd.getpwall() if passwd_entries is None else passwd_entries)
        groups = list(grp.getgrall() if group_entries is None else group_entries)
    except (OSError, KeyError) as e:
        raise DirectoryError(f"cannot read user/group directory: {e}") from e

    directory = Directory()
    for g in groups:
        group = Group(gid=int(g.gr_gid), name=g.gr_name.lower())
        directory.groups_by_gid.setdefault(group.gid, group)
        directory.groups_by_name.setdefault(group.name, group)

    for p in users:
        username = p.pw_name
        directory.known_users.add(username)
        uid = int(p.pw_uid)
        if uid < min_uid:
            notice(f"user {username} uid {uid} is below the minimum uid {min_uid}, skipped")
            continue
        if is_nologin(p.pw_shell):
            notice(f"user {username} (uid {uid}) has a nologin shell, skipped")
            continue
        if not home_exists(p.pw_dir):
            notice(f"user {username} (uid {uid}) home directory {p.pw_dir} does not exist, skipped")
            continue
        if int(p.pw_gid) not in directory.groups_by_gid:
            notice(f"user {username} (uid {uid}) primary gid {p.pw_gid} has no group name, skipped")
            continue
        directory.accounts[username] = Account(
            uid=uid,
            username=username,
            gid=int(p.pw_gid),
            full_name=gecos_name(p.pw_gecos),
            home_dir=p.pw_dir,
            shell=p.pw_shell,
        )
    return directory
