from agentwire.cli import cli

cli()
