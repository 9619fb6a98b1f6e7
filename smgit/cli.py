"""smgit command line interface."""

import json
import logging
import sys

import click

from . import __version__, plugin
from .config import Config, load_configuration
from .errors import SmGitError, error_handler
from .git.repository_info import StatusReport
from .pm.edit import EditOptions
from .pm.fetch import FetchOptions


def setup_logging(config: Config, debug: bool = False) -> None:
    """Configure logging for the CLI."""

    class StructuredFormatter(logging.Formatter):
        def format(self, record):
            if hasattr(record, 'operation'):
                record.msg = f"[{record.operation}] {record.msg}"
            return super().format(record)

    level = logging.DEBUG if debug else getattr(logging, config.log_level)
    formatter = StructuredFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                                    datefmt='%Y-%m-%d %H:%M:%S')

    logger = logging.getLogger('smgit')
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False


def _fail(error: Exception, operation: str) -> None:
    response = error_handler.handle(error, {"operation": operation})
    click.echo(json.dumps(response.to_dict(), indent=2), err=True)
    click.echo(str(response.status_code))
    sys.exit(1)


def _print_status(report: StatusReport, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return
    if not report.is_repository:
        click.echo("not a git repository")
        return
    line = f"{report.branch} {report.revision or ''}".strip()
    if report.tag:
        line += f" ({report.tag})"
    flags = []
    if report.dirty:
        flags.append("dirty")
    if report.ahead:
        flags.append(f"ahead {report.ahead}")
    if report.behind:
        flags.append(f"behind {report.behind}")
    if report.no_remote:
        flags.append("no remote branch")
    if flags:
        line += " [" + ", ".join(flags) + "]"
    click.echo(line)


@click.group()
@click.version_option(__version__, prog_name="smgit")
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.option("--verbose/--no-verbose", "-v", default=False, help="Stream git output")
@click.pass_context
def cli(ctx, debug, verbose):
    """Git source backend for the sm package manager."""
    ctx.ensure_object(dict)
    try:
        config = load_configuration()
    except ValueError as e:
        _fail(e, "configure")
    setup_logging(config, debug)
    ctx.obj["config"] = config
    ctx.obj["debug"] = debug
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("locator")
@click.argument("package_path", type=click.Path())
@click.option("--write", is_flag=True, help="Clone through the write URI")
@click.option("--cached", is_flag=True, help="Do not fetch an existing cache entry")
@click.option("--delete", is_flag=True, help="Always repopulate the package directory")
@click.option("--readonly", is_flag=True, help="Remove version control metadata afterwards")
@click.option("--vcs-only", is_flag=True, help="Restore version control metadata only")
@click.option("--no-cache", is_flag=True, help="Clone straight into the package directory")
@click.option("--tags", is_flag=True, help="Fetch tags")
@click.pass_context
def install(ctx, locator, package_path, write, cached, delete, readonly, vcs_only, no_cache, tags):
    """Install LOCATOR (uri[#revision]) into PACKAGE_PATH."""
    options = FetchOptions(
        write=write,
        cached=cached,
        delete=delete,
        readonly=readonly,
        vcs_only=vcs_only,
        use_cache=not no_cache,
        tags=tags,
        verbose=ctx.obj["verbose"],
        debug=ctx.obj["debug"]
    )
    try:
        fetcher = plugin.get_fetcher(ctx.obj["config"])
        status_code = plugin.install(locator, package_path, options, fetcher=fetcher)
    except (SmGitError, ValueError, OSError) as e:
        _fail(e, "install")
    if status_code is None:
        sys.exit(1)
    click.echo(str(int(status_code)))


@cli.command()
@click.argument("path", type=click.Path(), default=".")
@click.option("--now", is_flag=True, help="Fetch from origin first")
@click.option("--locator", default=None, help="Package source, enables the writable check")
@click.option("--json", "as_json", is_flag=True, help="Print the status report as JSON")
@click.pass_context
def status(ctx, path, now, locator, as_json):
    """Show the git status of the package at PATH."""
    try:
        fetcher = plugin.get_fetcher(ctx.obj["config"])
        report = plugin.status(path, now=now, verbose=ctx.obj["verbose"], debug=ctx.obj["debug"],
                               locator=locator, fetcher=fetcher)
    except (SmGitError, ValueError, OSError) as e:
        _fail(e, "status")
    if report is None:
        sys.exit(1)
    _print_status(report, as_json)


@cli.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--locator", default=None, help="Package source (default: package.json repository)")
@click.option("--no-cache", is_flag=True, help="Clone straight into the package directory")
@click.pass_context
def edit(ctx, path, locator, no_cache):
    """Turn the installed package at PATH into an editable git working copy."""
    options = EditOptions(
        locator=locator,
        use_cache=not no_cache,
        verbose=ctx.obj["verbose"],
        debug=ctx.obj["debug"]
    )
    try:
        fetcher = plugin.get_fetcher(ctx.obj["config"])
        status_code = plugin.edit(path, options, fetcher=fetcher)
    except (SmGitError, ValueError, OSError) as e:
        _fail(e, "edit")
    if status_code is None:
        sys.exit(1)
    click.echo(str(int(status_code)))


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
