import pathlib

import pytest

from sopsy.profiles import AgeConfig, Profile, ProfileStore, read_public_keys
from sopsy.utils import (
    DuplicateMapping,
    DuplicateName,
    KeyFileError,
    MissingBackend,
    NotFound,
    ProfileNotFound,
)


def test_add_then_get(store):
    profile = Profile(name='stg', age=AgeConfig(recipients=['age1stg']))
    store.add_profile(profile)
    assert store.get_profile('stg') == profile


def test_add_duplicate_leaves_store_unchanged(store):
    before = dict(store.profiles)
    with pytest.raises(DuplicateName):
        store.add_profile(Profile(name='dev', age=AgeConfig(recipients=['age1other'])))
    assert store.profiles == before


def test_names_are_case_sensitive(store):
    store.add_profile(Profile(name='Dev', age=AgeConfig(recipients=['age1x'])))
    assert store.get_profile('Dev') != store.get_profile('dev')


def test_remove(store):
    store.remove_profile('dev')
    with pytest.raises(ProfileNotFound):
        store.get_profile('dev')


def test_remove_missing_leaves_store_unchanged(store):
    before = dict(store.profiles)
    with pytest.raises(NotFound):
        store.remove_profile('missing')
    assert store.profiles == before


def test_list_profiles(store):
    assert sorted(p.name for p in store.list_profiles()) == ['dev', 'empty', 'prod']


def test_default_profile_is_not_checked(store):
    store.set_default_profile('missing')
    assert store.default_profile == 'missing'
    store.clear_default_profile()
    assert store.default_profile is None


def test_backend_summary(store):
    assert store.get_profile('prod').backend_summary == 'age'
    assert store.get_profile('empty').backend_summary == 'none'
    assert Profile(name='x', age=AgeConfig()).backend_summary == 'none'


def test_validate_requires_backend():
    with pytest.raises(MissingBackend):
        Profile(name='x', age=AgeConfig(recipients=[])).validate()


def test_key_file_path_is_expanded():
    profile = Profile(name='x', age=AgeConfig(key_file='~/keys.txt'))
    assert profile.key_file_path == pathlib.Path.home() / 'keys.txt'


def test_match_directory_exact_and_descendant(store):
    assert store.match_directory('/home/a/proj').profile == 'prod'
    assert store.match_directory('/home/a/proj/sub/dir').profile == 'prod'


def test_match_directory_ignores_similar_prefix(store):
    assert store.match_directory('/home/a/proj2') is None
    assert store.match_directory('/home/a') is None


def test_match_directory_cleans_paths(store):
    assert store.match_directory('/home/a/other/../proj/./x').profile == 'prod'


def test_match_directory_prefers_longest(store):
    store.add_directory('/home/a', 'dev')
    store.add_directory('/home/a/proj/deep', 'empty')
    assert store.match_directory('/home/a/proj/deep/x').profile == 'empty'
    assert store.match_directory('/home/a/proj/x').profile == 'prod'
    assert store.match_directory('/home/a/x').profile == 'dev'


def test_match_directory_expands_home(store):
    store.add_directory('~/work', 'dev', auto=True)
    assert store.match_directory(pathlib.Path.home() / 'work' / 'repo').profile == 'dev'


def test_add_directory_rejects_duplicates(store):
    with pytest.raises(DuplicateMapping):
        store.add_directory('/home/a/proj/', 'dev')


def test_add_directory_requires_profile(store):
    with pytest.raises(ProfileNotFound):
        store.add_directory('/srv', 'missing')


def test_add_directory_makes_relative_paths_absolute(store, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert store.add_directory('infra', 'dev') == str(tmp_path / 'infra')
    assert store.add_directory('~/work/', 'dev') == '~/work'
    assert store.match_directory(tmp_path / 'infra' / 'app').profile == 'dev'


def test_remove_directory_relative(store, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    store.add_directory('infra', 'dev')
    store.remove_directory('infra')
    assert list(store.directories) == ['/home/a/proj']


def test_remove_directory(store):
    store.remove_directory('/home/a/proj/')
    assert store.directories == {}
    with pytest.raises(NotFound):
        store.remove_directory('/home/a/proj')


def test_read_public_keys(tmp_path):
    key_file = tmp_path / 'keys.txt'
    key_file.write_text(
        "# created: 2024-01-01T00:00:00Z\n"
        "# public key: age1first\n"
        "AGE-SECRET-KEY-1FIRST\n"
        "# public key: age1second\n"
        "AGE-SECRET-KEY-1SECOND\n")
    assert read_public_keys(key_file) == ['age1first', 'age1second']


def test_empty_store():
    store = ProfileStore()
    assert store.list_profiles() == []
    assert store.match_directory('/') is None


def test_read_public_keys_missing_file(tmp_path):
    with pytest.raises(KeyFileError):
        read_public_keys(tmp_path / 'missing.txt')
