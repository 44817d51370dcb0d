"""apikit CLI - Main Entry Point.

Commands:
    annotations - List annotations found in a project tree
    routes      - List the routes a project tree declares
    serve       - Run an ASGI application with uvicorn
"""

import json
import sys
from typing import Optional, Tuple

import click

from . import __version__
from .controller.compiler import annotation_routes
from .discovery import AnnotationCache, SourceScanner, detect_in
from .faults import DiscoveryFault


def _scan(path: str, include: Tuple[str, ...]):
    """Fresh scan of ``path``; a CLI run never reuses cached results."""
    scanner = SourceScanner()
    try:
        result = detect_in(path, list(include) or None, cache=AnnotationCache(), scanner=scanner)
    except DiscoveryFault as e:
        click.secho(f"✗ {e.message}", fg="red", err=True)
        sys.exit(1)
    return result, scanner.get_stats()


@click.group()
@click.version_option(version=__version__, prog_name="apikit")
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, verbose: bool):
    """Annotation-driven REST API toolkit.

    \b
    Quick start:
      apikit annotations ./myproject
      apikit routes ./myproject --include controllers
      apikit serve myapp.main:app --port 8080
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose


# ============================================================================
# Commands
# ============================================================================

@cli.command('annotations')
@click.argument('path', type=click.Path(exists=True, file_okay=False))
@click.option('--include', '-i', multiple=True, help='Sub-path to scan (repeatable)')
@click.option('--json-output', is_flag=True, help='Print JSON instead of text')
@click.pass_context
def annotations(ctx, path: str, include: Tuple[str, ...], json_output: bool):
    """
    List every annotation found under PATH.

    Examples:
      apikit annotations .
      apikit annotations . --include src/controllers --json-output
    """
    result, stats = _scan(path, include)

    if json_output:
        click.echo(json.dumps({
            "annotations": [o.to_dict() for o in result],
            "stats": {**result.stats(), "total": result.total, "files": len(result.files)},
        }, indent=2))
        return

    for occurrence in result:
        location = f"{occurrence.file_path}:{occurrence.line_number}"
        click.echo(f"@{occurrence.kind.value:<15} {occurrence.target_name}")
        if ctx.obj['verbose']:
            click.secho(f"    {location}", dim=True)
            for name, value in occurrence.to_dict()["parameters"].items():
                click.secho(f"    {name} = {value}", dim=True)

    click.echo()
    click.secho(
        f"{result.total} annotations in {len(result.files)} files "
        f"({stats['scan_time'] * 1000.0:.1f}ms)",
        fg="green",
    )
    for kind, count in sorted(result.stats().items()):
        click.echo(f"  {kind}: {count}")


@cli.command('routes')
@click.argument('path', type=click.Path(exists=True, file_okay=False))
@click.option('--include', '-i', multiple=True, help='Sub-path to scan (repeatable)')
def routes(path: str, include: Tuple[str, ...]):
    """
    List the routes declared under PATH.

    Examples:
      apikit routes .
    """
    result, _ = _scan(path, include)
    lines = annotation_routes(result)
    for line in lines:
        click.echo(line)
    if not lines:
        click.secho("No routes found", fg="yellow")


@cli.command('serve')
@click.argument('app')
@click.option('--host', type=str, default='127.0.0.1', help='Server host')
@click.option('--port', type=int, default=8080, help='Server port')
@click.option('--reload', is_flag=True, help='Enable hot-reload')
@click.option('--log-level', type=click.Choice(['debug', 'info', 'warning', 'error']), default='info')
def serve(app: str, host: str, port: int, reload: bool, log_level: str):
    """
    Serve APP (``module:attribute``) with uvicorn.

    Examples:
      apikit serve myapp.main:app
      apikit serve myapp.main:server.app --port 9000 --reload
    """
    try:
        import uvicorn
    except ImportError:
        click.secho("✗ uvicorn is not installed. Install it with: pip install uvicorn", fg="red", err=True)
        sys.exit(1)

    try:
        uvicorn.run(app, host=host, port=port, reload=reload, log_level=log_level)
    except KeyboardInterrupt:
        click.echo()
        click.secho("✓ Server stopped", fg="green")


def main(argv: Optional[list] = None):
    """Entry point for `apikit` command."""
    cli(args=argv, obj={})


if __name__ == '__main__':
    main()
