"""Main CLI entry point for coderemoval."""

import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional

import click
import yaml

from .config import FAMILY_NAMES, MarkerConfig, config_path
from .editor import COMMANDS, Document, Selection, Status, run_command
from .errors import ConfigurationError, RemovalError
from .gate import EnvironmentContext, should_strip
from .scanner import find_issues, line_number, scan
from .transform import FileSystemHost, read_source, run_batch, write_source

GLYPHS = {"info": "✓", "warning": "⚠", "error": "✗"}


def parse_range(value: str, option: str) -> tuple[int, int]:
    """Parse ``A:B`` (or ``A``) into two integers."""
    first, _, last = value.partition(":")
    try:
        start = int(first)
        end = int(last) if last else start
    except ValueError:
        raise click.BadParameter(f"expected A:B, got {value!r}", param_hint=option) from None
    return start, end


def load_config(ctx: click.Context) -> MarkerConfig:
    """Load configuration once per invocation, exiting on invalid files."""
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = MarkerConfig.load(ctx.obj.get("config_file"))
        except (ConfigurationError, OSError, yaml.YAMLError) as e:
            click.echo(f"✗ Failed to load configuration: {e}", err=True)
            sys.exit(1)
    return ctx.obj["config"]


@click.group()
@click.version_option(package_name="code-removal")
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (default: $CODE_REMOVAL_CONFIG or ~/.coderemoval/config.yaml)",
)
@click.option("--debug", is_flag=True, help="Verbose tracing")
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[Path], debug: bool) -> None:
    """Strip marked code regions and manage removal markers."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["debug"] = debug

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command("strip")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option("--env", "environments", multiple=True, help="Environment where removal is active (repeatable)")
@click.option("--mode", help="Current build mode (default: $NODE_ENV)")
@click.option("--test-mode/--no-test-mode", default=None, help="Treat the run as a test run (default: $VITEST)")
@click.option("--include", multiple=True, help="File suffix to process (repeatable)")
@click.option("--exclude", multiple=True, help="Skip paths containing this text (repeatable)")
@click.option(
    "--family", "families", multiple=True, type=click.Choice(FAMILY_NAMES[1:]), help="Also strip a marker family"
)
@click.option("--strict/--no-strict", default=None, help="Refuse files with unbalanced markers")
@click.option("--write", is_flag=True, help="Rewrite files in place")
@click.option("--out-dir", type=click.Path(file_okay=False, path_type=Path), help="Write the processed tree here")
@click.option("--check", is_flag=True, help="Exit with status 1 if any file would change")
@click.option("--jobs", default=1, type=click.IntRange(min=1), help="Files processed concurrently")
@click.pass_context
def strip_command(
    ctx: click.Context,
    paths: tuple[Path, ...],
    environments: tuple[str, ...],
    mode: Optional[str],
    test_mode: Optional[bool],
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    families: tuple[str, ...],
    strict: Optional[bool],
    write: bool,
    out_dir: Optional[Path],
    check: bool,
    jobs: int,
) -> None:
    """Remove marked regions from source files.

    Without --write or --out-dir nothing is written; the command reports
    what would change.
    """
    if write and out_dir is not None:
        raise click.UsageError("--write and --out-dir are mutually exclusive")

    config = load_config(ctx)
    try:
        options = config.options(
            environments=list(environments) or None,
            include=list(include) or None,
            exclude=list(exclude) or None,
            families=[config.marker_family(name) for name in families] or None,
            strict=strict,
            debug=ctx.obj["debug"] or None,
        )
    except ConfigurationError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    context = EnvironmentContext.from_environ(options.environments)
    if mode is not None:
        context = dataclasses.replace(context, mode=mode)
    if test_mode is not None:
        context = dataclasses.replace(context, test_mode=test_mode)

    if not should_strip(context):
        click.echo(f"(i) Code removal is not active for mode {context.mode or '(unset)'}; files are left unchanged")

    host = FileSystemHost(list(paths), out_dir=out_dir, write=write)
    try:
        report = run_batch(host, options, context, jobs=jobs)
    except (RemovalError, OSError) as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    if not report.files:
        click.echo("No eligible files found")
        return

    dry_run = not write and out_dir is None
    verb = "would remove" if dry_run else "removed"
    for file_report in report.files:
        for issue in file_report.issues:
            click.echo(f"⚠ {file_report.path}: {issue}", err=True)
        if file_report.error:
            click.echo(f"✗ {file_report.path}: {file_report.error}", err=True)
        elif file_report.changed:
            click.echo(f"✓ {file_report.path}: {verb} {file_report.removed} region(s)")

    click.echo(
        f"\n{len(report.changed)} of {len(report.files)} file(s) changed, "
        f"{report.removed} region(s) {verb}, {len(report.failed)} failure(s)"
    )

    if report.failed or (check and report.changed):
        sys.exit(1)


@cli.command("scan")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def scan_command(ctx: click.Context, file: Path) -> None:
    """List the removal regions and marker problems in a file."""
    config = load_config(ctx)
    text = read_source(file)

    found = 0
    for name in FAMILY_NAMES:
        markers = config.family(name)
        for region in scan(text, markers):
            found += 1
            first = line_number(text, region.start)
            last = line_number(text, max(region.start, region.end - 1))
            lines = f"line {first}" if first == last else f"lines {first}-{last}"
            click.echo(f"  • {name}: {region.kind.value} ({lines})")
        for issue in find_issues(text, markers):
            click.echo(f"  ⚠ {name}: {issue}")

    if not found:
        click.echo("No removal regions found")
    else:
        click.echo(f"\nFound {found} region(s)")


@cli.command("edit")
@click.argument("command", type=click.Choice(list(COMMANDS)))
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--lines", help="Select lines FIRST:LAST (1-based, inclusive)")
@click.option("--span", help="Select characters START:END (0-based, end exclusive)")
@click.option("--write", is_flag=True, help="Write the result back to FILE instead of printing it")
@click.pass_context
def edit_command(
    ctx: click.Context, command: str, file: Path, lines: Optional[str], span: Optional[str], write: bool
) -> None:
    """Run an editing command on a selection of FILE.

    Without --lines or --span the selection is an empty cursor at the start
    of the file.
    """
    if lines and span:
        raise click.UsageError("--lines and --span are mutually exclusive")

    config = load_config(ctx)
    text = read_source(file)

    try:
        if lines:
            selection = Selection.from_lines(text, *parse_range(lines, "--lines"))
        elif span:
            start, end = parse_range(span, "--span")
            if end > len(text):
                raise ValueError(f"Span {start}:{end} outside document of {len(text)} characters")
            selection = Selection(start, end)
        else:
            selection = Selection.cursor(0)
    except ValueError as e:
        raise click.BadParameter(str(e)) from None

    outcome = run_command(command, Document(text, selection), config)
    click.echo(f"{GLYPHS.get(outcome.level, '•')} {outcome.message}", err=True)

    new_text = outcome.apply(text)
    if write:
        if outcome.applied:
            write_source(file, new_text)
    else:
        click.echo(new_text, nl=False)

    if outcome.status is Status.FAILED:
        sys.exit(1)


@cli.group("config")
def config_group() -> None:
    """Show or change the marker configuration."""


def _target_path(ctx: click.Context) -> Path:
    return ctx.obj.get("config_file") or config_path()


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration as YAML."""
    config = load_config(ctx)
    click.echo(yaml.safe_dump(config.to_dict(), sort_keys=False), nl=False)


@config_group.command("path")
@click.pass_context
def config_show_path(ctx: click.Context) -> None:
    """Print where the configuration is stored."""
    click.echo(str(_target_path(ctx)))


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Change one setting, e.g. ``useSpacing false``."""
    path = _target_path(ctx)
    # The first `set` creates the file.
    if path.exists():
        config = load_config(ctx)
    else:
        config = MarkerConfig.default()

    try:
        updated = config.with_setting(key, value)
    except ConfigurationError as e:
        click.echo(f"✗ {e}", err=True)
        sys.exit(1)

    updated.save(path)
    click.echo(f"✓ {key} = {value} (saved to {path})")


@config_group.command("reset")
@click.confirmation_option(prompt="This will reset all settings to defaults. Continue?")
@click.pass_context
def config_reset(ctx: click.Context) -> None:
    """Restore every setting to its default."""
    path = _target_path(ctx)
    MarkerConfig.default().save(path)
    click.echo(f"✓ Settings reset to defaults ({path})")


def main() -> None:
    """Entry point for coderemoval command."""
    cli(obj={})


if __name__ == "__main__":
    main()
