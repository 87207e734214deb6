"""
Reading and writing the YAML config file.

The file is always rewritten in full. Writes go to a temporary file in the
same directory which then replaces the config file, so a failed save
leaves the previous file untouched.
"""

import logging
import os
import pathlib
import tempfile
import typing

import attr
import click
import yaml

from .profiles import AgeConfig, DirectoryMapping, Profile, ProfileStore, SOPSOptions, Settings
from .utils import ConfigIOError, ConfigNotFound, ParseError

log = logging.getLogger(__name__)

APP_NAME = 'sopsy'
CONFIG_NAME = 'config.yaml'


def default_config_path() -> pathlib.Path:
    return pathlib.Path(click.get_app_dir(APP_NAME)) / CONFIG_NAME


def load(path: pathlib.Path) -> ProfileStore:
    log.info(f"Loading config from {path}")
    try:
        text = path.read_text(encoding='utf-8')
    except FileNotFoundError:
        raise ConfigNotFound(path) from None
    except OSError as error:
        raise ConfigIOError(f"Could not read {path}: {error}") from error

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as error:
        raise ParseError(f"Could not parse {path}: {error}") from error

    store = from_dict(data or {}, source=path)
    log.info(f"Loaded {len(store.profiles)} profiles from {path}")
    return store


def save(store: ProfileStore, path: pathlib.Path) -> None:
    log.info(f"Saving config to {path}")
    text = yaml.safe_dump(to_dict(store), sort_keys=False, default_flow_style=False)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temporary = tempfile.NamedTemporaryFile(
            'w',
            encoding='utf-8',
            dir=path.parent,
            prefix=f'.{path.name}.',
            suffix='.tmp',
            delete=False)
        try:
            with temporary:
                temporary.write(text)
            os.replace(temporary.name, path)
        except OSError:
            os.unlink(temporary.name)
            raise
    except OSError as error:
        raise ConfigIOError(f"Could not write {path}: {error}") from error


def to_dict(store: ProfileStore) -> typing.Dict[str, typing.Any]:
    data: typing.Dict[str, typing.Any] = {}

    if store.default_profile:
        data['default_profile'] = store.default_profile

    data['profiles'] = {
        name: profile_to_dict(profile)
        for name, profile in store.profiles.items()}

    if store.directories:
        data['directories'] = {
            directory: {'profile': mapping.profile, 'auto': mapping.auto}
            for directory, mapping in store.directories.items()}

    data['settings'] = attr.asdict(store.settings)
    return data


def profile_to_dict(profile: Profile) -> typing.Dict[str, typing.Any]:
    data: typing.Dict[str, typing.Any] = {}

    if profile.description:
        data['description'] = profile.description

    if profile.age is not None:
        age: typing.Dict[str, typing.Any] = {}
        if profile.age.key_file:
            age['key_file'] = profile.age.key_file
        age['recipients'] = list(profile.age.recipients)
        data['age'] = age

    sops = attr.asdict(profile.sops, filter=lambda _, value: bool(value))
    if sops:
        data['sops'] = sops

    return data


def from_dict(data: typing.Any, source: pathlib.Path) -> ProfileStore:
    def fail(message: str) -> ParseError:
        return ParseError(f"Invalid config in {source}: {message}")

    if not isinstance(data, dict):
        raise fail("expected a mapping at the top level")

    default_profile = data.get('default_profile')
    if isinstance(default_profile, (dict, list)):
        raise fail("'default_profile' must be a profile name")
    default_profile = str(default_profile) if default_profile not in (None, '') else None

    profiles = {}
    for name, value in _mapping(data, 'profiles', fail).items():
        if not isinstance(value, (dict, type(None))):
            raise fail(f"profile '{name}' must be a mapping")
        profiles[str(name)] = profile_from_dict(str(name), value or {}, fail)

    directories = {}
    for directory, value in _mapping(data, 'directories', fail).items():
        if not isinstance(value, dict) or value.get('profile') in (None, '') \
                or isinstance(value['profile'], (dict, list)):
            raise fail(f"directory '{directory}' must have a 'profile' name")
        auto = value.get('auto', False)
        if not isinstance(auto, bool):
            raise fail(f"'auto' for directory '{directory}' must be true or false")
        directories[str(directory)] = DirectoryMapping(profile=str(value['profile']), auto=auto)

    settings = _mapping(data, 'settings', fail)
    return ProfileStore(
        profiles=profiles,
        default_profile=default_profile,
        directories=directories,
        settings=Settings(sops_path=str(settings.get('sops_path') or 'sops')))


def profile_from_dict(
        name: str,
        data: typing.Dict[str, typing.Any],
        fail: typing.Callable[[str], ParseError]) -> Profile:
    age = None
    if data.get('age') is not None:
        age_data = data['age']
        if not isinstance(age_data, dict):
            raise fail(f"'age' in profile '{name}' must be a mapping")
        recipients = age_data.get('recipients') or []
        if not isinstance(recipients, list) or not all(isinstance(r, str) for r in recipients):
            raise fail(f"'age.recipients' in profile '{name}' must be a list of strings")
        age = AgeConfig(
            recipients=recipients,
            key_file=age_data.get('key_file') or None)

    sops_data = data.get('sops') or {}
    if not isinstance(sops_data, dict):
        raise fail(f"'sops' in profile '{name}' must be a mapping")
    known = {field.name for field in attr.fields(SOPSOptions)}
    unknown = set(sops_data) - known
    if unknown:
        raise fail(f"unknown sops options in profile '{name}': {', '.join(sorted(unknown))}")

    return Profile(
        name=name,
        description=str(data.get('description') or ''),
        age=age,
        sops=SOPSOptions(**{key: (str(value) if value else None)
                            for key, value in sops_data.items()}))


def _mapping(
        data: typing.Dict[str, typing.Any],
        key: str,
        fail: typing.Callable[[str], ParseError]) -> typing.Dict[typing.Any, typing.Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise fail(f"'{key}' must be a mapping")
    return value
