import logging
import pathlib
import typing

import attr
import click

from . import __doc__, __version__, config, resolver, sops
from .profiles import AgeConfig, Profile, ProfileStore, SOPSOptions, read_public_keys
from .selectors import Selector, default_selector
from .utils import (
    ConfigNotFound,
    NoProfileAvailable,
    SopsyException,
    expand_path,
    find_git_directory,
)

log = logging.getLogger(__name__)

KEY_FILE_ENV = 'SOPS_AGE_KEY_FILE'


@attr.s(kw_only=True)
class Session:
    """State for a single invocation, passed to commands as ctx.obj."""

    config_path: pathlib.Path = attr.ib()
    profile_name: typing.Optional[str] = attr.ib(default=None)
    dry_run: bool = attr.ib(default=False)
    interactive: bool = attr.ib(default=True)
    store: typing.Optional[ProfileStore] = attr.ib(default=None)

    def load(self, missing_ok: bool = False) -> ProfileStore:
        if self.store is None:
            try:
                self.store = config.load(self.config_path)
            except ConfigNotFound:
                if not missing_ok:
                    raise
                log.info(f"No config at {self.config_path}, starting with an empty one")
                self.store = ProfileStore()
        return self.store

    def save(self) -> None:
        assert self.store is not None, "Config must be loaded before saving"
        config.save(self.store, self.config_path)

    def selector(self) -> typing.Optional[Selector]:
        return default_selector() if self.interactive else None

    def resolve(self) -> Profile:
        resolution = resolver.resolve(
            self.load(),
            explicit_name=self.profile_name,
            cwd=pathlib.Path.cwd(),
            selector=self.selector(),
            interactive=self.interactive)
        if resolution.source in (resolver.DIRECTORY, resolver.DEFAULT):
            click.echo(f"Using profile: {resolution.profile} ({resolution.source})", err=True)
        return resolution.profile

    def execute(self, arguments: typing.Sequence[str]) -> None:
        executor = sops.Sops(self.load().settings.sops_path)
        if self.dry_run:
            click.echo(executor.dry_run(arguments))
            return
        code = executor.run(arguments)
        if code != 0:
            click.get_current_context().exit(code)


def export_line(profile: Profile) -> typing.Optional[str]:
    key_file = profile.key_file_path
    if key_file is None:
        return None
    return f'export {KEY_FILE_ENV}="{key_file}"'


class PathType(click.Path):
    def convert(self, value, param, ctx):
        return pathlib.Path(super().convert(value, param, ctx))


file_argument = click.argument('file', type=click.STRING, required=True)


@click.group(help=__doc__)
@click.option(
    '-c', '--config', 'config_path',
    type=PathType(dir_okay=False),
    envvar='SOPSY_CONFIG',
    default=config.default_config_path,
    show_default=f"{click.get_app_dir(config.APP_NAME)}/{config.CONFIG_NAME}",
    help="Path to the config file.")
@click.option(
    '-p', '--profile', 'profile_name',
    metavar='NAME',
    default=None,
    help="Profile to use, skipping directory, default and interactive selection.")
@click.option(
    '--dry-run',
    default=False,
    is_flag=True,
    help="Print the sops command instead of running it.")
@click.option(
    '--no-interactive', 'no_interactive',
    default=False,
    is_flag=True,
    help="Never prompt for a profile.")
@click.option(
    '-d', '--debug', 'debug',
    default=False,
    is_flag=True,
    help="Enable debug logging.")
@click.pass_context
def main(
        ctx,
        config_path: pathlib.Path,
        profile_name: typing.Optional[str],
        dry_run: bool,
        no_interactive: bool,
        debug: bool):
    logging.basicConfig(level=(logging.DEBUG if debug else logging.WARNING))
    ctx.obj = Session(
        config_path=config_path,
        profile_name=profile_name,
        dry_run=dry_run,
        interactive=not no_interactive)


@main.command()
def version():
    """Show the application version."""
    click.echo(f"sopsy {__version__}")


@main.command()
@file_argument
@click.pass_obj
def encrypt(session: Session, file: str):
    """Encrypt a file with the selected profile."""
    profile = session.resolve()
    session.execute(sops.build(profile, 'encrypt', file))


@main.command()
@file_argument
@click.pass_obj
def decrypt(session: Session, file: str):
    """
    Decrypt a file.

    sops reads the keys from the file's metadata, so no profile is used.
    """
    session.load()
    session.execute(sops.build_decrypt(file))


@main.command()
@file_argument
@click.pass_obj
def edit(session: Session, file: str):
    """
    Edit an encrypted file in your $EDITOR.

    A profile is only used when given with -p/--profile, e.g. for a new
    file. Otherwise sops reads the keys from the existing file.
    """
    store = session.load()
    profile = store.get_profile(session.profile_name) if session.profile_name else None
    session.execute(sops.build_edit(profile, file))


@main.command(name='exec', context_settings={'ignore_unknown_options': True})
@click.argument('arguments', nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_obj
def exec_(session: Session, arguments: typing.Sequence[str]):
    """
    Run sops with the selected profile's flags and custom arguments.

    \b
        $ sopsy -p dev exec -- --in-place encrypt secrets.yaml
    """
    profile = session.resolve()
    session.execute(sops.build_exec(profile, arguments))


@main.group()
def profile():
    """Manage encryption profiles."""


@profile.command(name='add')
@click.argument('name')
@click.option('--description', default='', help="Profile description.")
@click.option(
    '--age', 'recipients',
    metavar='RECIPIENT',
    multiple=True,
    help="Age recipient public key, may be repeated.")
@click.option(
    '--age-key-file', 'key_file',
    metavar='PATH',
    default=None,
    help="Age key file. Its public keys are added as recipients.")
@click.option('--encrypted-regex', default=None)
@click.option('--encrypted-suffix', default=None)
@click.option('--unencrypted-regex', default=None)
@click.option('--unencrypted-suffix', default=None)
@click.pass_obj
def profile_add(
        session: Session,
        name: str,
        description: str,
        recipients: typing.Sequence[str],
        key_file: typing.Optional[str],
        encrypted_regex: typing.Optional[str],
        encrypted_suffix: typing.Optional[str],
        unencrypted_regex: typing.Optional[str],
        unencrypted_suffix: typing.Optional[str]):
    """
    Add a new profile.

    \b
        $ sopsy profile add dev --age-key-file ~/.config/sops/age/keys.txt
        $ sopsy profile add team --age age1abc... --age age1def...
    """
    store = session.load(missing_ok=True)

    recipients = list(recipients)
    if key_file:
        public_keys = read_public_keys(expand_path(key_file))
        recipients += [key for key in public_keys if key not in recipients]

    new = Profile(
        name=name,
        description=description,
        age=AgeConfig(recipients=recipients, key_file=key_file) if recipients or key_file else None,
        sops=SOPSOptions(
            encrypted_regex=encrypted_regex or None,
            encrypted_suffix=encrypted_suffix or None,
            unencrypted_regex=unencrypted_regex or None,
            unencrypted_suffix=unencrypted_suffix or None))
    new.validate()

    store.add_profile(new)
    session.save()
    click.echo(f"Profile '{name}' added")


@profile.command(name='ls')
@click.pass_obj
def profile_ls(session: Session):
    """List all profiles."""
    store = session.load(missing_ok=True)
    profiles = sorted(store.list_profiles(), key=lambda p: p.name)
    if not profiles:
        click.echo("No profiles configured")
        return

    rows = [('NAME', 'DESCRIPTION', 'BACKENDS')] + [
        (p.name, p.description, p.backend_summary) for p in profiles]
    widths = [max(len(row[i]) for row in rows) for i in range(2)]
    for row in rows:
        marker = '*' if row[0] == store.default_profile else ' '
        click.echo(f"{marker} {row[0]:<{widths[0]}}  {row[1]:<{widths[1]}}  {row[2]}".rstrip())


@profile.command(name='show')
@click.argument('name')
@click.pass_obj
def profile_show(session: Session, name: str):
    """Show profile details."""
    shown = session.load(missing_ok=True).get_profile(name)

    click.echo(f"Name:        {shown.name}")
    click.echo(f"Description: {shown.description}")
    click.echo(f"Backends:    {shown.backend_summary}")

    if shown.key_file_path:
        click.echo(f"Key file:    {shown.key_file_path}")

    if shown.recipients:
        click.echo("\nAge recipients:")
        for recipient in shown.recipients:
            click.echo(f"  - {recipient}")

    options = attr.asdict(shown.sops, filter=lambda _, value: bool(value))
    if options:
        click.echo("\nSOPS options:")
        for key, value in options.items():
            click.echo(f"  {key}: {value}")


@profile.command(name='rm')
@click.argument('name')
@click.pass_obj
def profile_rm(session: Session, name: str):
    """Remove a profile."""
    store = session.load(missing_ok=True)
    store.remove_profile(name)
    if store.default_profile == name:
        store.clear_default_profile()
    session.save()
    click.echo(f"Profile '{name}' removed")


@profile.command(name='edit')
@click.pass_obj
def profile_edit(session: Session):
    """Edit the config file in your $EDITOR."""
    if not session.config_path.exists():
        session.load(missing_ok=True)
        session.save()

    click.edit(filename=str(session.config_path))

    # Reload to report mistakes straight away.
    session.store = None
    session.load()


@profile.command(name='use')
@click.argument('name', required=False)
@click.pass_obj
def profile_use(session: Session, name: typing.Optional[str]):
    """
    Set the default profile and print a shell export for its key file.

    Selects a profile interactively if no name is given.

    \b
        $ eval "$(sopsy profile use dev)"
    """
    store = session.load(missing_ok=True)

    if name:
        chosen = store.get_profile(name)
    else:
        selector = session.selector()
        if selector is None:
            raise NoProfileAvailable("Specify a profile: sopsy profile use <name>")
        chosen = resolver.select(store, selector)

    store.set_default_profile(chosen.name)
    session.save()

    line = export_line(chosen)
    if line:
        click.echo(line)


@profile.command(name='reset')
@click.pass_obj
def profile_reset(session: Session):
    """Clear the default profile."""
    store = session.load(missing_ok=True)
    store.clear_default_profile()
    session.save()
    click.echo("Default profile cleared", err=True)


@profile.command(name='current', hidden=True)
@click.pass_obj
def profile_current(session: Session):
    """Print the shell export for the default profile, if any."""
    store = session.load(missing_ok=True)
    current = store.profiles.get(store.default_profile or '')
    line = export_line(current) if current else None
    if line:
        click.echo(line)


@main.group(name='dir')
def directory():
    """Map directories to profiles."""


@directory.command(name='add')
@click.argument('name')
@click.argument('path', required=False, default=None)
@click.option(
    '--auto/--no-auto',
    default=False,
    help="Use the profile without asking inside this directory.")
@click.pass_obj
def directory_add(session: Session, name: str, path: typing.Optional[str], auto: bool):
    """
    Map a directory to a profile.

    PATH defaults to the current git repository, or the current directory.
    """
    store = session.load(missing_ok=True)
    if path is None:
        path = str(find_git_directory() or pathlib.Path.cwd())

    key = store.add_directory(path, name, auto=auto)
    session.save()
    click.echo(f"Mapped {key} to profile '{name}'{' (auto)' if auto else ''}")


@directory.command(name='ls')
@click.pass_obj
def directory_ls(session: Session):
    """List directory mappings."""
    store = session.load(missing_ok=True)
    if not store.directories:
        click.echo("No directories mapped")
        return

    for path, mapping in sorted(store.directories.items()):
        auto = click.style(' (auto)', fg='green') if mapping.auto else ''
        click.echo(f"{path} -> {mapping.profile}{auto}")


@directory.command(name='rm')
@click.argument('path')
@click.pass_obj
def directory_rm(session: Session, path: str):
    """Remove a directory mapping."""
    store = session.load(missing_ok=True)
    store.remove_directory(path)
    session.save()
    click.echo(f"Removed mapping for {path}")


@main.group(name='config')
def config_group():
    """Manage the config file."""


@config_group.command(name='init')
@click.option('--force/--no-force', default=False, help="Replace an existing config file.")
@click.pass_obj
def config_init(session: Session, force: bool):
    """Create an empty config file."""
    if session.config_path.exists() and not force:
        raise SopsyException(f"Config file {session.config_path} already exists")

    session.store = ProfileStore()
    session.save()
    click.echo(f"Created {session.config_path}")


@config_group.command(name='path')
@click.pass_obj
def config_show_path(session: Session):
    """Print the path of the config file."""
    click.echo(str(session.config_path))


@config_group.command(name='set-sops-path')
@click.argument('path')
@click.pass_obj
def config_set_sops_path(session: Session, path: str):
    """Set the sops executable to run."""
    store = session.load(missing_ok=True)
    store.settings = attr.evolve(store.settings, sops_path=path)
    session.save()
    click.echo(f"sops path set to {path}")
