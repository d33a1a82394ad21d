"""CLI package bootstrap.

Defines root group (`cli`) in helpers and imports submodules so their
decorators register commands.
"""
from .helpers import cli  # root group
from . import sync_cmds  # noqa: F401
from . import playlist_cmds  # noqa: F401
from . import credential_cmds  # noqa: F401
from . import config_cmds  # noqa: F401

__all__ = ["cli"]
