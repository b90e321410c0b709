"""Built-in CLI sub-commands for opscribe.

This package groups the Typer command modules that form the CLI's top-level
command tree:

* :mod:`~opscribe.commands.projects` -- list discovered projects and the
  endpoints of one project.
* :mod:`~opscribe.commands.resolve` -- resolve one operation.
* :mod:`~opscribe.commands.config` -- view and modify global settings.

Multi-command groups (``config``) export a :class:`typer.Typer`
sub-application; single commands export a plain callback function registered
directly on the root app.
"""
