import sys

import pytest

from sopsy import sops
from sopsy.profiles import AgeConfig, Profile, SOPSOptions
from sopsy.utils import ExecutableNotFound


def test_build_keeps_recipient_order():
    profile = Profile(name='team', age=AgeConfig(recipients=['k1', 'k2']))
    assert sops.build(profile, 'encrypt', 'secret.yaml') == [
        '--age', 'k1', '--age', 'k2', 'encrypt', 'secret.yaml']


def test_build_sops_options_in_fixed_order():
    profile = Profile(
        name='k8s',
        age=AgeConfig(recipients=['k1']),
        sops=SOPSOptions(
            unencrypted_suffix='_plain',
            encrypted_regex='^data$',
            unencrypted_regex='^meta$',
            encrypted_suffix='_secret'))
    assert sops.build(profile, 'encrypt', 'a.yaml') == [
        '--age', 'k1',
        '--encrypted-regex', '^data$',
        '--encrypted-suffix', '_secret',
        '--unencrypted-regex', '^meta$',
        '--unencrypted-suffix', '_plain',
        'encrypt', 'a.yaml']


def test_build_skips_empty_options():
    profile = Profile(name='x', sops=SOPSOptions(encrypted_regex='', encrypted_suffix='_enc'))
    assert sops.build(profile, 'encrypt', 'a.yaml') == [
        '--encrypted-suffix', '_enc', 'encrypt', 'a.yaml']


def test_build_without_backends():
    assert sops.build(Profile(name='bare'), 'encrypt', 'a.yaml') == ['encrypt', 'a.yaml']


def test_build_decrypt():
    assert sops.build_decrypt('secret.yaml') == ['decrypt', 'secret.yaml']


def test_build_edit_without_profile():
    assert sops.build_edit(None, 'secret.yaml') == ['edit', 'secret.yaml']


def test_build_edit_with_profile():
    profile = Profile(name='dev', age=AgeConfig(recipients=['k1']))
    assert sops.build_edit(profile, 'secret.yaml') == ['--age', 'k1', 'edit', 'secret.yaml']


def test_build_exec():
    profile = Profile(name='dev', age=AgeConfig(recipients=['k1']))
    assert sops.build_exec(profile, ['--in-place', 'encrypt', 'a.yaml']) == [
        '--age', 'k1', '--in-place', 'encrypt', 'a.yaml']


def test_dry_run_quotes_arguments():
    assert sops.Sops().dry_run(['--encrypted-regex', '^(a|b)$', 'encrypt', 'my file.yaml']) == (
        "sops --encrypted-regex '^(a|b)$' encrypt 'my file.yaml'")


def test_run_returns_exit_code():
    assert sops.Sops(sys.executable).run(['-c', 'import sys; sys.exit(3)']) == 3


def test_run_missing_executable(tmp_path):
    with pytest.raises(ExecutableNotFound):
        sops.Sops(str(tmp_path / 'no-such-sops')).run(['decrypt', 'a.yaml'])
