"""
Interactive profile selection.

A selector is given the candidate profiles and returns the one the user
picked, or raises SelectionCancelled if the user aborts.
"""

import logging
import shutil
import subprocess
import typing

import attr
import click

from .profiles import Profile
from .utils import ExecutableNotFound, SelectionCancelled, SopsyException

log = logging.getLogger(__name__)

# fzf exits with 1 when nothing matched and 130 when interrupted.
FZF_NO_MATCH = 1
FZF_INTERRUPTED = 130


def describe(profile: Profile) -> str:
    return f"{profile.name}  {profile.description}  [{profile.backend_summary}]"


class Selector:
    def select(self, profiles: typing.Sequence[Profile]) -> Profile:
        raise NotImplementedError


@attr.s(frozen=True)
class FzfSelector(Selector):
    path: str = attr.ib(default='fzf')
    prompt: str = attr.ib(default='Select profile > ')

    def command(self) -> typing.Tuple[str, ...]:
        return (
            self.path,
            '--height=10',
            '--delimiter=\t',
            '--with-nth=2..',
            f'--prompt={self.prompt}',
            '--header=Enter to select, Esc to cancel')

    def select(self, profiles: typing.Sequence[Profile]) -> Profile:
        lines = '\n'.join(
            f'{index}\t{describe(profile)}'
            for index, profile in enumerate(profiles))

        log.debug(f"Selecting from {len(profiles)} profiles with fzf")
        try:
            result = subprocess.run(
                self.command(),
                encoding='utf-8',
                input=lines,
                stdout=subprocess.PIPE)
        except FileNotFoundError:
            raise ExecutableNotFound(f"Could not find the fzf executable '{self.path}'") from None

        if result.returncode in (FZF_NO_MATCH, FZF_INTERRUPTED):
            raise SelectionCancelled()
        if result.returncode != 0:
            raise SopsyException(f"fzf exited with status {result.returncode}")

        index, _, _ = result.stdout.partition('\t')
        return profiles[int(index)]


class PromptSelector(Selector):
    """Print a numbered list of profiles and prompt for a number."""

    def select(self, profiles: typing.Sequence[Profile]) -> Profile:
        for number, profile in enumerate(profiles, start=1):
            click.echo(f"{number:>3}) {describe(profile)}", err=True)

        try:
            number = click.prompt(
                "Select profile",
                type=click.IntRange(1, len(profiles)),
                err=True)
        except click.Abort:
            raise SelectionCancelled() from None

        return profiles[number - 1]


def default_selector() -> Selector:
    if shutil.which('fzf'):
        return FzfSelector()
    return PromptSelector()
