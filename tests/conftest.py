import pathlib
import typing

import click.testing
import pytest

import sopsy.cli
from sopsy import config
from sopsy.profiles import AgeConfig, DirectoryMapping, Profile, ProfileStore, SOPSOptions


class FakeSelector:
    """Records the profiles it was offered and picks one by name."""

    def __init__(self, choice: typing.Optional[str] = None):
        self.choice = choice
        self.offered: typing.List[Profile] = []

    def select(self, profiles):
        self.offered = list(profiles)
        if self.choice is None:
            return profiles[0]
        return next(p for p in profiles if p.name == self.choice)


@pytest.fixture()
def store() -> ProfileStore:
    return ProfileStore(
        profiles={
            'dev': Profile(
                name='dev',
                description='Development',
                age=AgeConfig(recipients=['age1dev'])),
            'prod': Profile(
                name='prod',
                description='Production',
                age=AgeConfig(recipients=['age1prod1', 'age1prod2']),
                sops=SOPSOptions(encrypted_regex='^(data|stringData)$')),
            'empty': Profile(name='empty'),
        },
        directories={
            '/home/a/proj': DirectoryMapping(profile='prod', auto=True),
        })


@pytest.fixture()
def config_path(tmp_path) -> pathlib.Path:
    return tmp_path / 'sopsy' / 'config.yaml'


@pytest.fixture()
def saved(store, config_path) -> ProfileStore:
    config.save(store, config_path)
    return store


@pytest.fixture()
def selector(monkeypatch) -> FakeSelector:
    fake = FakeSelector()
    monkeypatch.setattr(sopsy.cli, 'default_selector', lambda: fake)
    return fake


@pytest.fixture()
def run(config_path):
    def run_func(arguments: typing.Sequence[str], **kwargs) -> click.testing.Result:
        assert all(isinstance(arg, str) for arg in arguments)
        runner = click.testing.CliRunner()
        return runner.invoke(sopsy.cli.main, ['-c', str(config_path), *arguments], **kwargs)

    return run_func


@pytest.fixture()
def invoke(run):
    def invoke_func(arguments: typing.Sequence[str], **kwargs) -> typing.List[str]:
        result = run(arguments, **kwargs)
        if result.exit_code != 0:
            message = f"Command sopsy {' '.join(arguments)} failed: {result.output}"
            raise Exception(message) from result.exception
        return result.output.splitlines()

    return invoke_func
