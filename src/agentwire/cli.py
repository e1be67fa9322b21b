"""Root CLI group and version flag."""

import signal

import click

# Keep a closed stdout pipe (e.g. `agentwire run ... | head`) from killing
# the process mid-stream without cleanup.
if hasattr(signal, "SIGPIPE"):
    signal.signal(signal.SIGPIPE, signal.SIG_IGN)

from agentwire import __version__
from agentwire.commands.check_remote import check_remote
from agentwire.commands.run import run


@click.group()
@click.version_option(version=__version__, prog_name="agentwire")
def cli() -> None:
    """agentwire — drive a coding agent CLI locally or over SSH."""


cli.add_command(run)
cli.add_command(check_remote)
