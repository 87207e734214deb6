"""
Choose the profile a command should use.

Precedence, first match wins:

1. An explicit profile name. A missing profile is an error.
2. A mapping for the current directory or a parent with auto enabled.
   The most specific mapping is used. Mappings without auto only
   suggest a profile for interactive selection.
3. The default profile, if it still exists.
4. Interactive selection, if allowed and there are any profiles.
"""

import logging
import pathlib
import typing

import attr

from .profiles import Profile, ProfileStore
from .selectors import Selector
from .utils import NoProfileAvailable

log = logging.getLogger(__name__)

EXPLICIT = 'explicit'
DIRECTORY = 'directory auto-select'
DEFAULT = 'default'
SELECTED = 'selected'


@attr.s(frozen=True)
class Resolution:
    profile: Profile = attr.ib()
    source: str = attr.ib()


def resolve(
        store: ProfileStore,
        explicit_name: typing.Optional[str],
        cwd: typing.Union[str, pathlib.Path],
        selector: typing.Optional[Selector] = None,
        interactive: bool = True) -> Resolution:
    if explicit_name:
        return Resolution(store.get_profile(explicit_name), EXPLICIT)

    suggested: typing.Optional[Profile] = None
    mapping = store.match_directory(cwd)
    if mapping is not None:
        if mapping.auto:
            log.info(f"Using profile {mapping.profile} mapped to {cwd}")
            return Resolution(store.get_profile(mapping.profile), DIRECTORY)

        suggested = store.profiles.get(mapping.profile)
        if suggested is None:
            log.warning(f"Directory mapping for {cwd} names missing profile {mapping.profile}")
        else:
            log.info(f"Directory {cwd} suggests profile {mapping.profile} (auto disabled)")

    if store.default_profile:
        if store.default_profile in store.profiles:
            log.info(f"Using default profile {store.default_profile}")
            return Resolution(store.profiles[store.default_profile], DEFAULT)
        log.warning(f"Default profile {store.default_profile} does not exist")

    if not interactive or selector is None:
        raise NoProfileAvailable(
            "No profile specified - use -p/--profile or set a default "
            "with 'sopsy profile use <name>'")

    return Resolution(select(store, selector, suggested), SELECTED)


def select(
        store: ProfileStore,
        selector: Selector,
        suggested: typing.Optional[Profile] = None) -> Profile:
    """Ask the selector for a profile, listing any suggestion first."""
    profiles = sorted(store.list_profiles(), key=lambda p: p.name)
    if not profiles:
        raise NoProfileAvailable(
            "No profiles configured - run 'sopsy profile add <name>' to create one")

    if suggested is not None and suggested in profiles:
        profiles.remove(suggested)
        profiles.insert(0, suggested)

    return selector.select(profiles)
