"""Output formatting system with strict stdout/stderr discipline.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stdout** -- primary data only (resolved operations, project and endpoint
  lists). This is what downstream tools pipe and parse.
* **stderr** -- all diagnostics (status, warnings, errors, suggestions, and
  library log records). Never contaminates the data stream.
* **TTY detection** -- Rich formatting when stdout is an interactive
  terminal, plain text when piped to another process.
* **Colour control** -- respects ``NO_COLOR``, ``TERM=dumb``, and the
  ``--no-color`` CLI flag.

The module exposes two layers:

1. :class:`OutputManager` -- a stateful object holding format preferences,
   Rich consoles, and quiet/verbose flags. Created once in
   :func:`~opscribe.app.main_callback` and installed via :func:`set_output`.
   It also routes the ``opscribe`` logger to stderr through a
   :class:`~rich.logging.RichHandler`.
2. Module-level convenience functions (:func:`info`, :func:`error`,
   :func:`debug`, etc.) that delegate to the global ``OutputManager``
   instance so callers do not need to pass the manager around.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console, Group
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from opscribe.models import OperationDescription, SchemaField

_LOGGER_NAME = "opscribe"


class OutputFormat(str, Enum):
    """Enumeration of supported output formats.

    ``AUTO`` resolves to ``RICH`` when stdout is an interactive TTY and colour
    is not disabled, or to ``PLAIN`` otherwise. Callers can force a specific
    format via the ``--json`` or ``--plain`` CLI flags.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Central manager for all CLI output with stdout/stderr discipline.

    Maintains two Rich :class:`~rich.console.Console` instances -- one for
    stdout (data) and one for stderr (diagnostics) -- and routes every
    output call to the correct stream with appropriate formatting.

    Args:
        format: Desired output format. ``AUTO`` resolves based on TTY
            detection.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress non-essential informational messages and library
            warnings on stderr.
        verbose: Enable debug-level messages and library debug logging.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            self._format = (
                OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
            )
        else:
            self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(
            file=sys.stderr,
            no_color=self._no_color,
            stderr=True,
        )

    @property
    def format(self) -> OutputFormat:
        """The resolved output format."""
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # Logging
    # ------------------------------------------------------------------ #

    def configure_logging(self) -> None:
        """Route the ``opscribe`` logger to stderr.

        WARNING and above by default, DEBUG with ``--verbose``, nothing
        below ERROR with ``--quiet``. Replaces any handler installed by an
        earlier call.
        """
        logger = logging.getLogger(_LOGGER_NAME)
        for handler in list(logger.handlers):
            if isinstance(handler, RichHandler):
                logger.removeHandler(handler)

        if self._verbose:
            level = logging.DEBUG
        elif self._quiet:
            level = logging.ERROR
        else:
            level = logging.WARNING

        handler = RichHandler(
            console=self._stderr,
            show_time=False,
            show_path=self._verbose,
            markup=False,
        )
        handler.setLevel(level)
        logger.addHandler(handler)
        logger.setLevel(level)

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Output structured data (dict, list or string) to stdout in the active format."""
        if self._format == OutputFormat.JSON:
            self._print_json(data)
        elif self._format == OutputFormat.PLAIN:
            self._print_plain(data)
        else:
            self._print_rich(data)

    def print_data(self, text: str) -> None:
        """Print raw text to stdout."""
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print tabular data to stdout in the active format.

        * **Rich mode** -- styled :class:`~rich.table.Table` with column
          headers.
        * **JSON mode** -- array of objects keyed by header names.
        * **Plain mode** -- tab-separated values, one row per line.
        """
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))

        elif self._format == OutputFormat.PLAIN:
            self.print_data("\t".join(headers))
            for row in rows:
                self.print_data("\t".join(row))

        else:
            table = Table(title=title, show_header=True, header_style="bold cyan")
            for h in headers:
                table.add_column(h)
            for row in rows:
                table.add_row(*row)
            self._stdout.print(table)

    def print_operation(self, description: OperationDescription) -> None:
        """Print a resolved operation in the active format.

        JSON mode prints the camelCase payload, plain mode an indented text
        outline, Rich mode panels with field trees and highlighted examples.
        """
        if self._format == OutputFormat.JSON:
            self._print_json(description.model_dump(by_alias=True))
        elif self._format == OutputFormat.PLAIN:
            self.print_data("\n".join(plain_operation(description)))
        else:
            self._stdout.print(rich_operation(description))

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Print an informational message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            if self._no_color:
                print(message, file=sys.stderr, flush=True)
            else:
                self._stderr.print(message)

    def success(self, message: str) -> None:
        """Print a green success message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            if self._no_color:
                print(message, file=sys.stderr, flush=True)
            else:
                self._stderr.print(f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Print a yellow warning to stderr. NOT suppressed by ``--quiet``."""
        if self._no_color:
            print(f"Warning: {message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Print a bold-red error to stderr. Never suppressed."""
        if self._no_color:
            print(f"Error: {message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(f"[bold red]Error:[/bold red] {message}")

    def suggest(self, message: str) -> None:
        """Print a dimmed next-step suggestion to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            formatted = f"→ {message}"
            if self._no_color:
                print(formatted, file=sys.stderr, flush=True)
            else:
                self._stderr.print(f"[dim]{formatted}[/dim]")

    def debug(self, message: str) -> None:
        """Print a debug message to stderr. Only shown when ``--verbose`` is active."""
        if self._verbose:
            if self._no_color:
                print(f"[debug] {message}", file=sys.stderr, flush=True)
            else:
                self._stderr.print(f"[dim][debug] {message}[/dim]")

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _print_json(self, data: Any) -> None:
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except (json.JSONDecodeError, TypeError):
                self.print_data(data)
                return
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    def _print_plain(self, data: Any) -> None:
        if isinstance(data, dict):
            for key, value in data.items():
                self.print_data(f"{key}\t{value}")
        elif isinstance(data, list):
            for item in data:
                if isinstance(item, dict):
                    self.print_data("\t".join(str(v) for v in item.values()))
                else:
                    self.print_data(str(item))
        else:
            self.print_data(str(data))

    def _print_rich(self, data: Any) -> None:
        if isinstance(data, (dict, list)):
            json_str = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            self._stdout.print(Syntax(json_str, "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data))


# ------------------------------------------------------------------ #
# Operation rendering
# ------------------------------------------------------------------ #


def field_label(field: SchemaField) -> str:
    """Short type label of a field: ``array<User>``, ``User`` or ``string``."""
    if field.is_array:
        return f"array<{field.ref_name}>" if field.ref_name else "array"
    if field.ref_name:
        return field.ref_name
    return field.type or "-"


def _plain_fields(fields: list[SchemaField], with_source: bool = False) -> list[str]:
    lines = []
    for f in fields:
        parts = [f"{'  ' * (f.depth + 1)}{f.name}: {field_label(f)}"]
        if f.format:
            parts.append(f"({f.format})")
        if f.required:
            parts.append("required")
        if with_source and f.source:
            parts.append(f"[{f.source}]")
        lines.append(" ".join(parts))
        lines.extend(_plain_fields(f.children, with_source))
    return lines


def plain_operation(op: OperationDescription) -> list[str]:
    """Render *op* as plain text lines."""
    lines = [f"{op.method} {op.url}"]
    for label, value in (
        ("tag", op.tag),
        ("summary", op.summary),
        ("operationId", op.operation_id),
    ):
        if value:
            lines.append(f"{label}: {value}")
    if op.deprecated:
        lines.append("deprecated: true")

    if op.parameters:
        lines.append("")
        lines.append("Parameters:")
        for p in op.parameters:
            flag = "required" if p.required else "optional"
            lines.append(f"  {p.name}\t{p.location}\t{p.type}\t{flag}")

    if op.request_fields:
        lines.append("")
        required = " (required)" if op.request_body_required else ""
        lines.append(f"Request body: {op.request_schema_name or 'inline'}{required}")
        lines.extend(_plain_fields(op.request_fields, with_source=True))

    if op.responses:
        lines.append("")
        lines.append("Responses:")
        for code, summary in op.responses.items():
            lines.append(f"  {code} {summary.description}")
    for schema in op.response_schemas:
        lines.append("")
        lines.append(f"Response {schema.code}: {schema.schema_name or 'inline'}")
        lines.extend(_plain_fields(schema.fields))

    lines.append("")
    lines.append("Errors:")
    for err in op.error_responses:
        lines.append(f"  {err.code} {err.description}")

    for title, text in (
        ("Request example", op.example_request),
        ("Response example", op.example_response),
        ("Algorithm", op.algorithm),
        ("Notes", op.notes),
    ):
        if text:
            lines.extend(["", f"{title}:", text])

    for dep in op.dependencies:
        lines.extend(["", f"Dependency {dep.name}: {dep.description}"])
        for label, value in (("method", dep.method), ("url", dep.url), ("when", dep.when)):
            if value:
                lines.append(f"  {label}: {value}")
    return lines


def _add_branches(tree: Tree, fields: list[SchemaField], with_source: bool) -> None:
    for f in fields:
        label = Text(f.name, style="bold" if f.required else "")
        label.append(f"  {field_label(f)}", style="cyan")
        if f.format:
            label.append(f" ({f.format})", style="dim")
        if f.required:
            label.append(" *", style="red")
        if with_source and f.source:
            label.append(f"  {f.source}", style="green")
        branch = tree.add(label)
        _add_branches(branch, f.children, with_source)


def rich_operation(op: OperationDescription) -> Group:
    """Build the Rich renderable of *op*."""
    parts: list[Any] = []
    header = Text(f"{op.method} ", style="bold magenta")
    header.append(op.url, style="bold")
    if op.deprecated:
        header.append("  deprecated", style="yellow")
    meta = [f"{k}: {v}" for k, v in (("tag", op.tag), ("operationId", op.operation_id)) if v]
    body = "\n".join(filter(None, [op.summary, op.description, *meta]))
    parts.append(Panel(body or "-", title=header, title_align="left"))

    if op.parameters:
        table = Table(title="Parameters", show_header=True, header_style="bold cyan")
        for column in ("Name", "In", "Type", "Required", "Description"):
            table.add_column(column)
        for p in op.parameters:
            table.add_row(p.name, p.location, p.type, "yes" if p.required else "no", p.description)
        parts.append(table)

    if op.request_fields:
        tree = Tree(f"Request body: {op.request_schema_name or 'inline'}")
        _add_branches(tree, op.request_fields, with_source=True)
        parts.append(tree)

    for schema in op.response_schemas:
        tree = Tree(f"Response {schema.code} {schema.description}: {schema.schema_name or 'inline'}")
        _add_branches(tree, schema.fields, with_source=False)
        parts.append(tree)

    errors = Table(title="Errors", show_header=True, header_style="bold cyan")
    errors.add_column("Code")
    errors.add_column("Description")
    for err in op.error_responses:
        errors.add_row(err.code, err.description)
    parts.append(errors)

    for title, text in (("Request example", op.example_request), ("Response example", op.example_response)):
        if text:
            parts.append(Panel(Syntax(text, "json", theme="monokai", word_wrap=True), title=title))
    if op.algorithm:
        parts.append(Panel(op.algorithm, title="Algorithm"))
    for dep in op.dependencies:
        detail = "\n".join(
            f"{label}: {value}"
            for label, value in (("Method", dep.method), ("URL", dep.url), ("When", dep.when))
            if value
        )
        parts.append(Panel(detail or "-", title=f"{dep.name} - {dep.description}"))
    if op.notes:
        parts.append(Panel(op.notes, title="Notes"))
    return Group(*parts)


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _is_tty() -> bool:
    """Check if stdout is a TTY."""
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """Check if color should be disabled per clig.dev.

    Returns True when NO_COLOR env var is set (any value) or TERM=dumb.
    """
    if os.environ.get("NO_COLOR") is not None:
        return True
    if os.environ.get("TERM") == "dumb":
        return True
    return False


# ------------------------------------------------------------------ #
# Global output instance (set during app startup)
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global :class:`OutputManager` instance."""
    global _output
    _output = output


def reset_output() -> None:
    """Reset the global :class:`OutputManager` to ``None``.

    Primarily useful in test suites to ensure a clean state between tests.
    """
    global _output
    _output = None


# ------------------------------------------------------------------ #
# Convenience functions that use the global instance
# ------------------------------------------------------------------ #


def format_response(data: Any) -> None:
    """Output structured data to stdout via the global :class:`OutputManager`."""
    get_output().format_response(data)


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
) -> None:
    """Print tabular data to stdout via the global :class:`OutputManager`."""
    get_output().print_table(headers, rows, title)


def print_operation(description: OperationDescription) -> None:
    """Print a resolved operation via the global OutputManager."""
    get_output().print_operation(description)


def info(message: str) -> None:
    """Print info message to stderr via the global OutputManager."""
    get_output().info(message)


def error(message: str) -> None:
    """Print error to stderr via the global OutputManager."""
    get_output().error(message)


def success(message: str) -> None:
    """Print success message to stderr via the global OutputManager."""
    get_output().success(message)


def warning(message: str) -> None:
    """Print warning to stderr via the global OutputManager."""
    get_output().warning(message)


def suggest(message: str) -> None:
    """Print next-step suggestion to stderr via the global OutputManager."""
    get_output().suggest(message)


def debug(message: str) -> None:
    """Print debug message to stderr via the global OutputManager."""
    get_output().debug(message)
