import asyncio
import os

from packager.config import PackagerOptions, WatchOptions
from packager.errors import ConfigurationError
from packager.inliner import encode_unit_resources
from packager.log import debug_log, set_verbose
from packager.minifiers import attempt_minify, cleanse, should_minify
from packager.resolver import resolve_entry
from packager.sources import normalize_sources
from packager.watcher import WatchSession

__all__ = ['bundle', 'bundle_sync', 'run_pass', 'set_verbose']


async def process_entry(entry, target, destination, options, request_options=None):
    """Run one source entry through the pipeline and write it to ``target``."""
    unit = await resolve_entry(entry, destination, request_options)
    code = unit.code

    if unit.ext != 'js':
        code = await encode_unit_resources(unit, request_options)
    code = cleanse(code)

    if should_minify(unit, options):
        debug_log(f"Minifying {entry.label}...")
        code = cleanse(await attempt_minify(unit.ext, code, options))

    debug_log(f"Writing {entry.label}...")
    target.write(code + '\n')


async def run_pass(entries, destination, options, request_options=None):
    """
    One bundling pass: every entry, in order, into ``destination``.

    Entries are awaited one at a time, so the output keeps the order of the
    source list no matter how long each one takes to resolve.
    """
    with open(destination, 'w', encoding='utf-8', newline='') as target:
        for entry in entries:
            await process_entry(entry, target, destination, options, request_options)


def watch(entries, destination, options, request_options=None):
    """Start a watch session that re-runs the pass whenever a source changes."""
    locations = [loc for entry in entries for loc in entry.locations]

    async def rebuild():
        await run_pass(entries, destination, options, request_options)

    session = WatchSession(locations, rebuild, WatchOptions.from_options(options), destination)
    return session.start()


async def bundle(sources, destination, options=None, request_options=None):
    """
    Bundle ``sources`` into ``destination``.

    Args:
        sources: List of locations (URL, path or literal text); a nested list
            is a group, concatenated and processed as one entry.
        destination: Output file path. Its extension decides how literal text
            is commented.
        options: PackagerOptions or dict (minify, watch, js, css, plus
            watcher settings).
        request_options: Extra keyword arguments for requests.get().

    Returns:
        None, or the running WatchSession when ``options.watch`` is set.

    Raises:
        ConfigurationError: If sources or options are malformed.
        ResolutionError: If a source cannot be embedded even as literal text.
        OSError: If the destination cannot be written.
    """
    options = PackagerOptions.coerce(options)
    entries = normalize_sources(sources)
    destination = os.fspath(destination)

    await run_pass(entries, destination, options, request_options)

    if not options.watch:
        return None

    return watch(entries, destination, options, request_options)


def bundle_sync(sources, destination, options=None, request_options=None):
    """Blocking bundle() for scripts. Watch mode needs a running loop, so use bundle() for that."""
    options = PackagerOptions.coerce(options)
    if options.watch:
        raise ConfigurationError("bundle_sync() cannot watch", suggestion="Await bundle() instead")
    return asyncio.run(bundle(sources, destination, options, request_options))
