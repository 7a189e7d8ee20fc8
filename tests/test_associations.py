from conftest import assoc_row, assoc_table

from hpc_accounts.associations import (
    ASSOC_FORMAT,
    parse_associations,
    parse_default_accounts,
)
from hpc_accounts.policy import SettingKey

SACCTMGR_HEADER = (
    'Cluster|Account|User|Partition|Share|GrpJobs|GrpTRES|GrpSubmit|GrpWall|GrpTRESMins|'
    'MaxJobs|MaxTRES|MaxTRESPerNode|MaxSubmit|MaxWall|MaxTRESMins|QOS|Def QOS|GrpTRESRunMins|'
)


class TestParseAssociations:

    def test_user_and_account_rows(self):
        out = assoc_table(
            assoc_row('physics', Share='1'),
            assoc_row('physics', 'bob', Share='5', GrpTRES='CPU=1200', QOS='normal', DefQOS='normal'),
        )
        state = parse_associations(out)
        assert 'physics' in state.accounts
        bob = state.record_for('bob')
        assert bob.account == 'physics'
        assert bob.default_account == 'physics'
        assert bob.get(SettingKey.FAIRSHARE) == '5'
        assert bob.get(SettingKey.GRPTRES) == 'cpu=1200'
        assert bob.get(SettingKey.QOS) == 'NORMAL'
        assert bob.get(SettingKey.DEFAULTQOS) == 'NORMAL'
        assert bob.get(SettingKey.MAXTRES) == ''

    def test_root_rows_dropped(self):
        out = assoc_table(
            assoc_row('root'),
            assoc_row('root', 'root', Share='1'),
        )
        state = parse_associations(out)
        assert state.accounts == {}
        assert state.users == {}

    def test_account_without_group_dropped(self, capsys):
        out = assoc_table(
            assoc_row('physics'),
            assoc_row('ghosts'),
            assoc_row('ghosts', 'casper', Share='1'),
        )
        state = parse_associations(out, known_groups={'physics'})
        assert list(state.accounts) == ['physics']
        assert 'casper' in state.users
        err = capsys.readouterr().err
        assert 'ghosts' in err and 'no corresponding UNIX group' in err

    def test_header_line(self):
        out = SACCTMGR_HEADER + '\n' + 'cluster1|physics|bob||5' + '|' * 12 + 'high|high||\n'
        state = parse_associations(out)
        bob = state.record_for('bob')
        assert bob.get(SettingKey.FAIRSHARE) == '5'
        assert bob.get(SettingKey.QOS) == 'HIGH'
        assert bob.get(SettingKey.DEFAULTQOS) == 'HIGH'

    def test_default_account_from_listing(self):
        out = assoc_table(
            assoc_row('chemistry', 'bob', Share='1'),
            assoc_row('physics', 'bob', Share='5'),
        )
        state = parse_associations(out, default_accounts={'bob': 'physics'})
        bob = state.record_for('bob')
        assert bob.account == 'physics'
        assert bob.default_account == 'physics'
        assert set(state.users['bob']) == {'chemistry', 'physics'}

    def test_default_account_falls_back_to_first_row(self):
        out = assoc_table(
            assoc_row('chemistry', 'bob', Share='1'),
            assoc_row('physics', 'bob', Share='5'),
        )
        assert parse_associations(out).record_for('bob').account == 'chemistry'

    def test_partition_less_row_preferred(self):
        out = assoc_table(
            assoc_row('physics', 'bob', Partition='gpu', Share='1'),
            assoc_row('physics', 'bob', Share='5'),
        )
        assert parse_associations(out).record_for('bob').get(SettingKey.FAIRSHARE) == '5'

    def test_cluster_filter(self):
        out = assoc_table(
            assoc_row('physics', 'bob', cluster='other', Share='1'),
            assoc_row('physics', 'dave', cluster='cluster1', Share='1'),
        )
        state = parse_associations(out, cluster='CLUSTER1')
        assert list(state.users) == ['dave']

    def test_short_lines_skipped(self):
        state = parse_associations('cluster1|physics|bob\n')
        assert state.users == {}

    def test_record_for_unknown_user(self):
        assert parse_associations('').record_for('nobody') is None


def test_parse_default_accounts():
    out = 'bob|Physics\nalice|admins\n|ignored\n'
    assert parse_default_accounts(out) == {'bob': 'physics', 'alice': 'admins'}


def test_format_uses_sacctmgr_field_names():
    assert 'DefaultQOS' in ASSOC_FORMAT
    assert 'DefQOS' not in ASSOC_FORMAT
    assert len(ASSOC_FORMAT) == 19
