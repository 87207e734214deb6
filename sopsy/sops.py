import logging
import shlex
import subprocess
import typing

import attr

from .profiles import Profile
from .utils import ExecutableNotFound

log = logging.getLogger(__name__)

# Flag order is fixed; sops reads the operation and file last.
SOPS_OPTION_FLAGS = (
    ('encrypted_regex', '--encrypted-regex'),
    ('encrypted_suffix', '--encrypted-suffix'),
    ('unencrypted_regex', '--unencrypted-regex'),
    ('unencrypted_suffix', '--unencrypted-suffix'),
)


def profile_flags(profile: Profile) -> typing.List[str]:
    """Convert a profile to sops flags, keeping the recipient order."""
    args: typing.List[str] = []
    for recipient in profile.recipients:
        args += ['--age', recipient]
    for field, flag in SOPS_OPTION_FLAGS:
        value = getattr(profile.sops, field)
        if value:
            args += [flag, value]
    return args


def build(profile: Profile, operation: str, target: str) -> typing.List[str]:
    return [*profile_flags(profile), operation, target]


def build_decrypt(target: str) -> typing.List[str]:
    return ['decrypt', target]


def build_edit(profile: typing.Optional[Profile], target: str) -> typing.List[str]:
    """Without a profile sops reads the keys from the existing file."""
    if profile is None:
        return ['edit', target]
    return build(profile, 'edit', target)


def build_exec(profile: Profile, arguments: typing.Sequence[str]) -> typing.List[str]:
    return [*profile_flags(profile), *arguments]


@attr.s(frozen=True)
class Sops:
    path: str = attr.ib(default='sops')

    def command(self, arguments: typing.Sequence[str]) -> typing.Tuple[str, ...]:
        return (self.path, *arguments)

    def dry_run(self, arguments: typing.Sequence[str]) -> str:
        return shlex.join(self.command(arguments))

    def run(self, arguments: typing.Sequence[str]) -> int:
        """
        Run sops and wait for it to exit, returning the exit code.

        Standard streams are inherited so that sops and the editor it
        opens can use the terminal.
        """
        command = self.command(arguments)
        log.debug(f"Running {shlex.join(command)}")
        try:
            result = subprocess.run(command, check=False)
        except FileNotFoundError:
            raise ExecutableNotFound(
                f"Could not find the sops executable '{self.path}' - install sops "
                f"or run 'sopsy config set-sops-path <path>'") from None
        log.debug(f"sops exited with status {result.returncode}")
        return result.returncode
