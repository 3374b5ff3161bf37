"""Built-in commands for notion-cli.

Each module exposes either a :class:`typer.Typer` sub-application or a
plain command function that :mod:`notioncli.app` registers on the root
application.  Commands read their caches and client from the
:class:`~notioncli.state.CliState` on the Typer context.
"""
