#-------------------------------------------------------------------------
# pytest configuration and fixtures for the hpc_accounts tests
#-------------------------------------------------------------------------

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

PROJ_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJ_ROOT / 'src'))

from hpc_accounts.associations import ASSOC_FIELDS
from hpc_accounts.directory import load_directory

MIN_UID = 1002
MISSING_HOME = '/home/missing'


def passwd(name, uid, gid, gecos='', home=None, shell='/bin/bash'):
    return SimpleNamespace(
        pw_name=name,
        pw_uid=uid,
        pw_gid=gid,
        pw_gecos=gecos,
        pw_dir=home or f'/home/{name}',
        pw_shell=shell,
    )


def group(name, gid):
    return SimpleNamespace(gr_name=name, gr_gid=gid)


def assoc_row(account, user='', cluster='cluster1', **values):
    """One pipe-delimited association line in sacctmgr column order."""
    data = {f: '' for f in ASSOC_FIELDS}
    data.update(Cluster=cluster, Account=account, User=user)
    data.update(values)
    return '|'.join(data[f] for f in ASSOC_FIELDS)


def assoc_table(*rows):
    return '\n'.join(rows) + '\n'


@pytest.fixture
def passwd_entries():
    return [
        passwd('root', 0, 0, 'root'),
        passwd('alice', 2001, 3000, 'Alice Anderson,Room 1'),
        passwd('bob', 2002, 3001, 'Bob Builder'),
        passwd('nolog', 2003, 3001, 'No Login', shell='/sbin/nologin'),
        passwd('nohome', 2004, 3001, 'No Home', home=MISSING_HOME),
        passwd('dave', 2005, 3001, 'Dave Doe'),
    ]


@pytest.fixture
def group_entries():
    return [
        group('root', 0),
        group('Admins', 3000),
        group('physics', 3001),
        group('chemistry', 3002),
    ]


@pytest.fixture
def directory(passwd_entries, group_entries):
    return load_directory(
        MIN_UID,
        passwd_entries=passwd_entries,
        group_entries=group_entries,
        home_exists=lambda path: path != MISSING_HOME,
    )


@pytest.fixture
def policy_lines():
    return [
        '# user settings',
        'DEFAULT:fairshare:2',
        'admins:fairshare:10',
        'physics:fairshare:5',
        '',
        'this line is malformed',
    ]
