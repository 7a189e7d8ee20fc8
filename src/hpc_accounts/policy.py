"""Layered user settings policy: DEFAULT, group and user scoped values.

The policy file holds one ``scope:key:value`` triple per line, e.g.::

    # comment
    DEFAULT:fairshare:2
    DEFAULT:GrpTRES:cpu=1200
    physics:fairshare:10
    alice:QOS:normal,high

Scope is ``DEFAULT``, a UNIX group name or a username.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import Dict, Iterable, List, NamedTuple, Optional, Union

from .common import HpcAccountsError, warning
from .config import SyncConfig

DEFAULT_SCOPE = "DEFAULT"


class SettingKey(Enum):
    FAIRSHARE = "fairshare"
    GRPTRES = "GrpTRES"
    GRPTRESMINS = "GrpTRESMins"
    MAXTRES = "MaxTRES"
    MAXTRESPERNODE = "MaxTRESPerNode"
    MAXTRESMINS = "MaxTRESMins"
    GRPTRESRUNMINS = "GrpTRESRunMins"
    QOS = "QOS"
    DEFAULTQOS = "DefaultQOS"

    @classmethod
    def parse(cls, name: str) -> Optional["SettingKey"]:
        """Case-insensitive lookup of a setting name, None when unknown."""
        return _KEYS_BY_LOWER.get((name or "").strip().lower())

    @property
    def is_tres(self) -> bool:
        return "TRES" in self.value

    @property
    def is_qos(self) -> bool:
        return self in (SettingKey.QOS, SettingKey.DEFAULTQOS)


_KEYS_BY_LOWER = {k.value.lower(): k for k in SettingKey}


def comparable(key: SettingKey, value: Optional[str]) -> str:
    """Normalize a value for comparison: TRES lowercase, QOS uppercase.

    TRES and QOS lists are compared as sorted items, sacctmgr reorders them.
    """
    value = (value or "").strip()
    if key.is_tres:
        value = value.lower()
    elif key.is_qos:
        value = value.upper()
    else:
        return value
    return ",".join(sorted(item.strip() for item in value.split(",") if item.strip()))


def builtin_defaults(config: SyncConfig) -> Dict[SettingKey, str]:
    return {
        SettingKey.FAIRSHARE: config.default_fairshare,
        SettingKey.GRPTRES: config.default_grptres.lower(),
        SettingKey.GRPTRESRUNMINS: config.default_grptresrunmins.lower(),
    }


class PolicyEntry(NamedTuple):
    scope: str
    key: Union[SettingKey, str]
    value: str


# ---------- Parsing ----------
def parse_policy_line(line: str) -> Optional[PolicyEntry]:
    """Parse one ``scope:key:value`` line; None for comments and malformed lines."""
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    parts = [p.strip() for p in line.split(":")]
    if len(parts) != 3:
        return None
    scope, name, value = parts
    if not scope or not name:
        return None
    if scope.upper() == DEFAULT_SCOPE:
        scope = DEFAULT_SCOPE
    key = SettingKey.parse(name)
    if key is None:
        # unknown settings are kept verbatim but never resolved
        return PolicyEntry(scope, name, value)
    if key.is_tres:
        value = value.lower()
    return PolicyEntry(scope, key, value)


def parse_policy(lines: Iterable[str]) -> List[PolicyEntry]:
    entries = []
    for line in lines:
        entry = parse_policy_line(line)
        if entry is not None:
            entries.append(entry)
    return entries


def load_policy(path: str) -> List[PolicyEntry]:
    """Read the policy file, returning no entries (with a warning) if it is missing."""
    if not path or not os.path.isfile(path):
        warning(f"policy file {path} not found, using built-in defaults only")
        return []
    try:
        with open(path, encoding="utf-8", errors="ignore") as f:
            return parse_policy(f)
    except OSError as e:
        raise HpcAccountsError(f"cannot read policy file {path}: {e}") from e


# ---------- Resolution ----------
class PolicyStore:
    """Two-level lookup ``by_scope[scope][key]`` over the policy entries.

    Group scopes are also indexed lowercased, matching the directory group names.
    """

    def __init__(self, entries: Iterable[PolicyEntry], builtin: Optional[Dict[SettingKey, str]] = None):
        self.by_scope: Dict[str, Dict[SettingKey, str]] = {}
        self.by_group: Dict[str, Dict[SettingKey, str]] = {}
        self.unknown: Dict[str, Dict[str, str]] = {}
        self.builtin: Dict[SettingKey, str] = dict(builtin or {})
        for entry in entries:
            if isinstance(entry.key, SettingKey):
                self.by_scope.setdefault(entry.scope, {})[entry.key] = entry.value
                if entry.scope != DEFAULT_SCOPE:
                    self.by_group.setdefault(entry.scope.lower(), {})[entry.key] = entry.value
            else:
                self.unknown.setdefault(entry.scope, {})[entry.key] = entry.value

    @classmethod
    def from_config(cls, config: SyncConfig, path: Optional[str] = None) -> "PolicyStore":
        return cls(load_policy(path or config.config_file), builtin_defaults(config))

    def scopes(self) -> List[str]:
        return [s for s in self.by_scope if s != DEFAULT_SCOPE]

    def has_scope(self, scope: str) -> bool:
        return bool(self.by_scope.get(scope))

    def has_group(self, group: str) -> bool:
        return bool(self.by_group.get(group.lower()))

    def lookup(self, key: SettingKey, username: str, group: Optional[str]) -> str:
        """Resolve one key: user scope, then group scope, DEFAULT, built-in."""
        tiers = (
            self.by_scope.get(username, {}),
            self.by_group.get(group.lower(), {}) if group else {},
            self.by_scope.get(DEFAULT_SCOPE, {}),
        )
        for settings in tiers:
            value = settings.get(key)
            if value is not None and value != "":
                return value
        return self.builtin.get(key, "")

    def resolve(self, username: str, group: Optional[str]) -> Dict[SettingKey, str]:
        """Resolved settings for a user; keys unset at every tier are omitted."""
        resolved = {}
        for key in SettingKey:
            value = self.lookup(key, username, group)
            if value:
                resolved[key] = value
        return resolved
