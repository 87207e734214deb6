import logging
import pathlib
import typing

import attr

from .utils import (
    DuplicateMapping,
    DuplicateName,
    KeyFileError,
    MissingBackend,
    NotFound,
    ProfileNotFound,
    directory_key,
    expand_path,
    in_directory,
)

log = logging.getLogger(__name__)

PUBLIC_KEY_PREFIX = '# public key:'


@attr.s(frozen=True, kw_only=True)
class AgeConfig:
    recipients: typing.Tuple[str, ...] = attr.ib(default=(), converter=tuple)
    key_file: typing.Optional[str] = attr.ib(default=None)

    @property
    def key_file_path(self) -> typing.Optional[pathlib.Path]:
        return expand_path(self.key_file) if self.key_file else None


@attr.s(frozen=True, kw_only=True)
class SOPSOptions:
    """Formatting options passed to sops. Empty values are not passed."""

    encrypted_regex: typing.Optional[str] = attr.ib(default=None)
    encrypted_suffix: typing.Optional[str] = attr.ib(default=None)
    unencrypted_regex: typing.Optional[str] = attr.ib(default=None)
    unencrypted_suffix: typing.Optional[str] = attr.ib(default=None)


@attr.s(frozen=True, kw_only=True)
class Profile:
    name: str = attr.ib()
    description: str = attr.ib(default='')
    age: typing.Optional[AgeConfig] = attr.ib(default=None)
    sops: SOPSOptions = attr.ib(factory=SOPSOptions)

    def __str__(self):
        return self.name

    @property
    def recipients(self) -> typing.Tuple[str, ...]:
        return self.age.recipients if self.age else ()

    @property
    def key_file_path(self) -> typing.Optional[pathlib.Path]:
        return self.age.key_file_path if self.age else None

    @property
    def has_backends(self) -> bool:
        return bool(self.recipients)

    @property
    def backend_summary(self) -> str:
        return 'age' if self.has_backends else 'none'

    def validate(self) -> None:
        if not self.has_backends:
            raise MissingBackend(
                f"Profile '{self.name}' needs at least one encryption backend "
                f"(--age-key-file or --age)")


@attr.s(frozen=True, kw_only=True)
class DirectoryMapping:
    profile: str = attr.ib()
    auto: bool = attr.ib(default=False)


@attr.s(frozen=True, kw_only=True)
class Settings:
    sops_path: str = attr.ib(default='sops')


@attr.s(kw_only=True)
class ProfileStore:
    """
    Profiles, the default profile and directory mappings from a config file.

    Directory keys are absolute paths or start with '~', which is only
    expanded when matched against another path.
    """

    profiles: typing.Dict[str, Profile] = attr.ib(factory=dict)
    default_profile: typing.Optional[str] = attr.ib(default=None)
    directories: typing.Dict[str, DirectoryMapping] = attr.ib(factory=dict)
    settings: Settings = attr.ib(factory=Settings)

    def add_profile(self, profile: Profile) -> None:
        if profile.name in self.profiles:
            raise DuplicateName(f"Profile '{profile.name}' already exists")
        log.debug(f"Adding profile {profile.name}")
        self.profiles[profile.name] = profile

    def remove_profile(self, name: str) -> None:
        if name not in self.profiles:
            raise ProfileNotFound(name)
        log.debug(f"Removing profile {name}")
        del self.profiles[name]

    def get_profile(self, name: str) -> Profile:
        try:
            return self.profiles[name]
        except KeyError:
            raise ProfileNotFound(name) from None

    def list_profiles(self) -> typing.List[Profile]:
        return list(self.profiles.values())

    def set_default_profile(self, name: str) -> None:
        self.default_profile = name

    def clear_default_profile(self) -> None:
        self.default_profile = None

    def add_directory(
            self,
            directory: str,
            profile: str,
            auto: bool = False) -> str:
        """Map a directory to a profile, returning the key it is stored under."""
        self.get_profile(profile)
        directory = directory_key(directory)
        expanded = expand_path(directory)
        for existing in self.directories:
            if expand_path(existing) == expanded:
                raise DuplicateMapping(
                    f"Directory {existing} is already mapped to profile "
                    f"'{self.directories[existing].profile}'")
        self.directories[directory] = DirectoryMapping(profile=profile, auto=auto)
        return directory

    def remove_directory(self, directory: str) -> None:
        expanded = expand_path(directory_key(directory))
        for existing in list(self.directories):
            if existing == directory or expand_path(existing) == expanded:
                del self.directories[existing]
                return
        raise NotFound(f"Directory {directory} is not mapped to a profile")

    def match_directory(
            self,
            cwd: typing.Union[str, pathlib.Path]
    ) -> typing.Optional[DirectoryMapping]:
        """Find the most specific mapping for a directory or its parents."""
        cwd = expand_path(cwd)
        matches = [
            (expand_path(directory), mapping)
            for directory, mapping in self.directories.items()
            if in_directory(cwd, expand_path(directory))]

        if not matches:
            return None

        directory, mapping = max(matches, key=lambda match: len(match[0].parts))
        log.debug(f"Directory {cwd} matches mapping {directory} -> {mapping.profile}")
        return mapping


def read_public_keys(path: pathlib.Path) -> typing.List[str]:
    """Read the public keys age-keygen writes as comments in a key file."""
    try:
        text = path.read_text()
    except OSError as error:
        raise KeyFileError(f"Could not read age key file {path}: {error}") from error

    keys = []
    for line in text.splitlines():
        line = line.strip()
        if line.startswith(PUBLIC_KEY_PREFIX):
            keys.append(line[len(PUBLIC_KEY_PREFIX):].strip())
    return keys
