"""Diff resolved user settings against Slurm associations.

For every eligible UNIX account the desired settings are resolved from the
policy (user, group, DEFAULT, built-in) and compared with the user's
association. The result is the minimal list of sacctmgr corrections:
``create user`` for users Slurm does not know, ``modify user`` with only the
changed fields, and ``delete user`` for associations whose user is no longer
an eligible UNIX account.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .associations import ObservedRecord, ObservedState
from .common import notice, warning
from .directory import Account, Directory
from .policy import PolicyStore, SettingKey, comparable

DEFAULT_ACCOUNT_FIELD = "defaultaccount"


class ActionKind(Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    NOOP = "noop"


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    user: str
    account: Optional[str] = None
    fields: Tuple[Tuple[str, str], ...] = ()

    def command(self) -> Optional[str]:
        """The sacctmgr command line (without the program name), None for no-ops."""
        assignments = " ".join(f"{k}={v}" for k, v in self.fields)
        if self.kind is ActionKind.CREATE:
            parts = [f"create user name={self.user}"]
            if assignments:
                parts.append(assignments)
            parts.append(f"{DEFAULT_ACCOUNT_FIELD}={self.account}")
            return " ".join(parts)
        if self.kind is ActionKind.MODIFY:
            return f"modify user where name={self.user} set {assignments}"
        if self.kind is ActionKind.DELETE:
            return f"delete user {self.user}"
        return None


def changed_fields(
    desired: Dict[SettingKey, str], record: ObservedRecord, group: str
) -> List[Tuple[str, str]]:
    fields = []
    for key in SettingKey:
        value = desired.get(key, "")
        if not value:
            continue
        if comparable(key, value) != comparable(key, record.get(key)):
            fields.append((key.value, value))
    if record.default_account != group:
        fields.append((DEFAULT_ACCOUNT_FIELD, group))
    return fields


class Reconciler:
    def __init__(self, directory: Directory, policy: PolicyStore, observed: ObservedState):
        self.directory = directory
        self.policy = policy
        self.observed = observed
        self._groups_noted: Set[str] = set()

    def check_policy_scopes(self) -> None:
        """Warn about scopes that are neither a group nor a user and have no association."""
        for scope in self.policy.scopes():
            if scope.lower() in self.directory.groups_by_name or scope in self.directory.known_users:
                continue
            if scope not in self.observed.users:
                warning(f"policy scope {scope} is not a known group or user and has no Slurm association")

    def desired(self, account: Account) -> Dict[SettingKey, str]:
        group = self.directory.group_of(account).name
        if group not in self._groups_noted:
            self._groups_noted.add(group)
            if not self.policy.has_group(group):
                notice(f"group {group} has no policy settings, using defaults")
        return self.policy.resolve(account.username, group)

    def plan_account(self, account: Account) -> Action:
        group = self.directory.group_of(account).name
        desired = self.desired(account)
        record = self.observed.record_for(account.username)
        if record is None:
            fields = tuple((key.value, desired[key]) for key in SettingKey if key in desired)
            return Action(ActionKind.CREATE, account.username, account=group, fields=fields)
        if record.default_account != group:
            warning(
                f"user {account.username} default account {record.default_account} "
                f"differs from UNIX group {group}"
            )
        fields = changed_fields(desired, record, group)
        if fields:
            return Action(ActionKind.MODIFY, account.username, account=group, fields=tuple(fields))
        return Action(ActionKind.NOOP, account.username, account=group)

    def orphans(self) -> List[str]:
        return sorted(u for u in self.observed.users if u not in self.directory.accounts)

    def plan(self, include_noop: bool = False) -> List[Action]:
        """Create/modify actions for eligible accounts followed by deletions."""
        self.check_policy_scopes()
        actions = []
        for username in sorted(self.directory.accounts):
            action = self.plan_account(self.directory.accounts[username])
            if include_noop or action.kind is not ActionKind.NOOP:
                actions.append(action)
        for user in self.orphans():
            actions.append(Action(ActionKind.DELETE, user))
        return actions
