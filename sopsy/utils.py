import os.path
import pathlib
import typing

import click


def find_git_directory() -> typing.Optional[pathlib.Path]:
    # GitPython raises ImportError when the git executable is missing.
    try:
        import git
    except ImportError:
        return None

    try:
        repo = git.Repo(search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        return None
    return pathlib.Path(repo.working_dir)


def expand_path(path: typing.Union[str, pathlib.Path]) -> pathlib.Path:
    """Expand '~' and remove redundant separators and '..' segments."""
    return pathlib.Path(os.path.normpath(os.path.expanduser(str(path))))


def directory_key(path: str) -> str:
    """
    Normalise a directory for storing as a mapping key.

    Relative paths are made absolute. Paths starting with '~' are kept
    as written and expanded when matched.
    """
    if path.startswith('~'):
        return os.path.normpath(path)
    return os.path.abspath(path)


def in_directory(
        path: pathlib.Path,
        directory: pathlib.Path) -> bool:
    """
    Check if a path is a directory or one of its descendants.

    Compares whole path segments, so '/foo2' is not inside '/foo'.
    """
    return path == directory or directory in path.parents


class SopsyException(click.ClickException):
    pass


class NotFound(SopsyException):
    pass


class ProfileNotFound(NotFound):
    def __init__(self, name: str):
        super().__init__(f"Profile '{name}' not found")
        self.name = name


class ConfigNotFound(NotFound):
    def __init__(self, path: pathlib.Path):
        super().__init__(
            f"Config file {path} does not exist - "
            f"run 'sopsy config init' to create one")
        self.path = path


class DuplicateName(SopsyException):
    pass


class DuplicateMapping(DuplicateName):
    pass


class ParseError(SopsyException):
    pass


class SopsyIOError(SopsyException):
    pass


class ConfigIOError(SopsyIOError):
    pass


class KeyFileError(SopsyIOError):
    pass


class NoProfileAvailable(SopsyException):
    pass


class SelectionCancelled(SopsyException):
    def __init__(self, message: str = "Selection cancelled"):
        super().__init__(message)


class MissingBackend(SopsyException):
    pass


class ExecutableNotFound(SopsyException):
    pass
