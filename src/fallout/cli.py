import functools
import logging
import traceback
from typing import Iterable, List, Optional

import click
from pydantic import ValidationError

from . import constants
from .config import Settings, check_palette
from .cache import CacheFilter, DirectoryCache, clean_all, clean_older_than, cutoff_days_ago
from .grep import Grepper, GrepOptions
from .format import TextFormatter
from .stats import collect_stats
from .utils import setup_logger, parse_module_levels, parse_datetime, split_options
from .exceptions import (
    FalloutError,
    ConfigurationError,
    CacheError,
    SearchError,
    FalloutIOError,
)
from . import __version__


def setup_logging(debug: bool, log_levels: str = None, log_file: str = None):
    """Setup logger with debug and module-level configuration"""
    module_levels = parse_module_levels(log_levels) if log_levels else None
    setup_logger(debug=debug, module_levels=module_levels, log_file=log_file)


def handle_errors(func):
    """Decorator to handle common exceptions"""
    def fail(message: str):
        logging.error(message)
        ctx = click.get_current_context()
        if ctx.obj.get('debug'):
            traceback.print_exc()
        raise click.Abort()

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConfigurationError as e:
            fail(f"Configuration error: {e}")
        except SearchError as e:
            fail(f"Search error: {e}")
        except CacheError as e:
            fail(f"Cache error: {e}")
        except FalloutIOError as e:
            fail(f"IO error: {e}")
        except ValidationError as e:
            fail(f"Invalid options: {e}")
        except FalloutError as e:
            fail(f"An unexpected application error occurred: {e}")
        except Exception as e:
            fail(f"An unexpected error occurred: {e}")
    return wrapper


def _datetime_option(ctx, param, value):
    if value is None:
        return None
    try:
        return parse_datetime(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


def _palette_option(ctx, param, value):
    if value is None:
        return None
    try:
        check_palette(value)
    except ValueError as e:
        raise click.BadParameter(str(e))
    return value


def _split_all(values: Iterable[str]) -> List[str]:
    items = []
    for v in values:
        items.extend(split_options(v))
    return items


def load_settings(ctx: click.Context) -> Settings:
    """Settings file plus the global command line overrides, loaded once per run"""
    settings = ctx.obj.get('settings')
    if settings is not None:
        return settings
    settings = Settings(ctx.obj.get('config_file'))
    if settings.log_levels and not ctx.obj.get('log_levels'):
        setup_logging(ctx.obj.get('debug', False), ",".join(f"{k}={v}" for k, v in settings.log_levels.items()))
    ctx.obj['settings'] = settings
    return settings


def open_cache(ctx: click.Context) -> DirectoryCache:
    settings = load_settings(ctx)
    root = ctx.obj.get('cache_dir') or settings.cache_dir
    return DirectoryCache(root)


def use_color(ctx: click.Context) -> bool:
    mode = ctx.obj.get('color_mode') or load_settings(ctx).color_mode
    if mode == "always":
        return True
    if mode == "never":
        return False
    return click.get_text_stream('stdout').isatty()


def read_stdin_origins() -> List[str]:
    """Origins piped in, e.g. `portgrep -u go -1 | fallout grep -C2 error:`"""
    stdin = click.get_text_stream('stdin')
    if stdin.isatty():
        return []
    return stdin.read().split()


@handle_errors
def do_grep(ctx: click.Context, queries, fixed_strings, ored, filenames_only,
            after_context, before_context, context, builders, categories, origins,
            names, since, before, jobs):
    """Execute grep command"""
    settings = load_settings(ctx)
    cache = open_cache(ctx)

    flt = CacheFilter(
        builders=_split_all(builders),
        categories=_split_all(categories),
        origins=_split_all(origins) + read_stdin_origins(),
        names=_split_all(names),
        since=since,
        before=before,
    )
    walker = cache.walker(flt)

    # a plain walk lists matching logs in builder/origin/timestamp order
    if not queries:
        def print_path(entry, err):
            if err is not None:
                raise err
            click.echo(entry.path)
        walker.walk(print_path)
        return

    if before_context is None:
        before_context = context if context is not None else settings.context_before
    if after_context is None:
        after_context = context if context is not None else settings.context_after

    options = GrepOptions(
        context_before=before_context,
        context_after=after_context,
        query_is_regex=not fixed_strings,
        ored=ored,
    )
    fm = TextFormatter(
        color=use_color(ctx),
        filenames_only=filenames_only,
        colors=ctx.obj.get('colors') or settings.colors,
    )

    def on_result(entry, matches, err):
        if err is not None:
            raise err
        fm.format(entry, matches)

    Grepper(walker).grep(options, list(queries), on_result, jobs or settings.jobs)


@handle_errors
def do_clean(ctx: click.Context, remove_all: bool, days: Optional[int], date):
    """Execute clean command"""
    cache = open_cache(ctx)
    if remove_all:
        click.echo(f"Removing {cache.path}")
        clean_all(cache)
        return

    if date is not None:
        cutoff = date
    else:
        cutoff = cutoff_days_ago(days if days is not None else load_settings(ctx).clean_days)
    clean_older_than(cache, cutoff, on_remove=lambda entry: click.echo(f"Removing {entry}"))


@handle_errors
def do_stats(ctx: click.Context):
    """Execute stats command"""
    cache = open_cache(ctx)
    click.echo(collect_stats(cache).render(), nl=False)


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('-l', '--log-levels', help="Comma-separated per-module log levels (e.g., 'walk=DEBUG,grep=INFO')")
@click.option('-f', '--log-file', help='Path to log file')
@click.option('--config', 'config_file', type=click.Path(dir_okay=False),
              help=f'Settings file (default: ~/.config/{constants.CONFIG_SUBDIR}/{constants.CONFIG_FILENAME})')
@click.option('--cache-dir', type=click.Path(file_okay=False), help='Log cache directory')
@click.option('-M', '--color-mode', type=click.Choice(constants.COLOR_MODES), help='Color mode (default: auto)')
@click.option('-G', '--colors', callback=_palette_option,
              help=f'Colors in query,match,path,separator order (default: "{constants.DEFAULT_COLORS}")')
@click.version_option(version=__version__, prog_name='fallout')
@click.pass_context
def cli(ctx, debug, log_levels, log_file, config_file, cache_dir, color_mode, colors):
    """Fallout - Cache and search FreeBSD package build failure logs

    \b
    Examples:
      fallout grep -C2 -b 140amd64 'error:'    Search logs of one builder
      fallout grep -o devel/go                 List cached logs of one port
      fallout clean -D 14                      Remove logs older than two weeks
      fallout stats                            Show cache statistics
    """
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug
    ctx.obj['log_levels'] = log_levels
    ctx.obj['config_file'] = config_file
    ctx.obj['cache_dir'] = cache_dir
    ctx.obj['color_mode'] = color_mode
    ctx.obj['colors'] = colors
    setup_logging(debug, log_levels, log_file)


@cli.command()
@click.argument('queries', nargs=-1)
@click.option('-F', '--fixed-strings', is_flag=True, help='Interpret queries as plain text, not regular expressions')
@click.option('-O', '--or', 'ored', is_flag=True, help='Multiple queries are OR-ed (default: AND-ed)')
@click.option('-l', '--files-with-matches', 'filenames_only', is_flag=True, help='Print only matching log filenames')
@click.option('-A', '--after-context', type=click.IntRange(min=0), help='Show lines of context after match')
@click.option('-B', '--before-context', type=click.IntRange(min=0), help='Show lines of context before match')
@click.option('-C', '--context', type=click.IntRange(min=0), help='Show lines of context around match')
@click.option('-b', '--builder', 'builders', multiple=True, help='Limit search to these builders')
@click.option('-c', '--category', 'categories', multiple=True, help='Limit search to these categories')
@click.option('-o', '--origin', 'origins', multiple=True, help='Limit search to these origins')
@click.option('-n', '--name', 'names', multiple=True, help='Limit search to these port names')
@click.option('-s', '--since', callback=_datetime_option, help='Only failures since this RFC-3339 date or date-time')
@click.option('-e', '--before', callback=_datetime_option, help='Only failures before this RFC-3339 date or date-time')
@click.option('-j', '--jobs', type=click.IntRange(min=1), help='Parallel jobs, -j1 outputs sorted results')
@click.pass_context
def grep(ctx, queries, fixed_strings, ored, filenames_only, after_context, before_context,
         context, builders, categories, origins, names, since, before, jobs):
    """Search cached fallout logs

    \b
    Filters take comma or space separated lists, builder, category and
    name match partially, origins exactly. Origins are also read from
    stdin when it is not a terminal. Without queries the matching logs
    are listed.

    \b
    Examples:
      fallout grep -F -C3 'undefined reference'
      fallout grep -O -c lang,devel 'rustc' 'cargo'
      portgrep -u go -1 | fallout grep -l 'go: '
    """
    do_grep(ctx, queries, fixed_strings, ored, filenames_only, after_context, before_context,
            context, builders, categories, origins, names, since, before, jobs)


@cli.command()
@click.option('-x', '--all', 'remove_all', is_flag=True, help='Remove all cached data')
@click.option('-D', '--days', type=click.IntRange(min=0),
              help=f'Remove logs that are more than days old (default: {constants.DEFAULT_CLEAN_DAYS})')
@click.option('-A', '--older-than', 'date', callback=_datetime_option,
              help='Remove logs that are older than this RFC-3339 date or date-time')
@click.pass_context
def clean(ctx, remove_all, days, date):
    """Clean log cache

    \b
    Examples:
      fallout clean               Remove logs older than the default age
      fallout clean -A 2024-01-01 Remove logs from before 2024
      fallout clean -x            Remove everything
    """
    do_clean(ctx, remove_all, days, date)


@cli.command()
@click.pass_context
def stats(ctx):
    """Show cached logs statistics"""
    do_stats(ctx)


def main():
    cli(auto_envvar_prefix="FALLOUT", obj={})
