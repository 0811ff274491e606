"""
Content resolution for source locations.

A location is fetched when it looks like a URL, read from disk when it looks
like a path, and otherwise embedded as literal text wrapped in a comment. A
location that cannot be fetched or read also falls back to the literal form,
so a single bad source never aborts the bundle.
"""
import asyncio
import os
import re
from urllib.parse import urljoin

import requests

from .errors import ConfigurationError, FetchError, ResolutionError
from .log import debug_log
from .sources import Group, ResolvedUnit, Segment, Single, extension_of, is_minified_name

CHUNK_SIZE = 64 * 1024
MAX_PATH_LENGTH = 4096
MAX_NAME_LENGTH = 255

_URL_RE = re.compile(r'^(?:\w+:)?//(?:[^\s.]+\.\S{2}|localhost[:?\d]*)\S*$')
# Characters that never show up in a path someone meant to read
_INVALID_PATH_CHARS_RE = re.compile(r'[‘“!#$%&+^<=>`\x00\n\r]')
_GLOB_CHARS_RE = re.compile(r'[*?\[\]{}]')


def is_url(value):
    """True for absolute or protocol-relative URLs with a plausible host."""
    return isinstance(value, str) and bool(_URL_RE.match(value))


def is_invalid_path(value):
    """True when ``value`` cannot be a file path (and so must be literal text)."""
    if not isinstance(value, str) or not value.strip():
        return True
    if len(value) > MAX_PATH_LENGTH:
        return True
    if _INVALID_PATH_CHARS_RE.search(value) or _GLOB_CHARS_RE.search(value):
        return True
    return any(len(part) > MAX_NAME_LENGTH for part in re.split(r'[\\/]', value))


def wrap_in_comment(ext, text):
    """Wrap literal text in a comment for the given output type (html by default)."""
    if ext in ('js', 'css'):
        return '\n'.join(['/*!', text.replace('*/', '*\\/'), '*/'])
    return '\n'.join(['<!--', text.replace('-->', '--\\>'), '-->'])


def _get(url, request_options):
    params = {'url': url}
    params.update(request_options or {})
    base_url = params.pop('base_url', None)
    if base_url:
        params['url'] = urljoin(base_url, params['url'])
    if params['url'].startswith('//'):
        params['url'] = 'https:' + params['url']

    try:
        resp = requests.get(**params)
        resp.raise_for_status()
        return resp.content
    except TypeError as e:
        raise ConfigurationError("Invalid request options", details=str(e))
    except requests.exceptions.Timeout as e:
        raise FetchError("Request timed out", source=url, details=str(e),
                         suggestion="Pass a larger 'timeout' in the request options")
    except requests.exceptions.ConnectionError as e:
        raise FetchError("Failed to connect", source=url, details=str(e))
    except requests.exceptions.HTTPError as e:
        raise FetchError(f"HTTP {resp.status_code} response", source=url, details=str(e))
    except requests.exceptions.RequestException as e:
        raise FetchError("Request failed", source=url, details=str(e))


async def download_file(url, request_options=None):
    """Fetch the bytes at ``url``; request options are passed to requests.get()."""
    return await asyncio.to_thread(_get, url, request_options)


def _read_chunks(path):
    chunks = []
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(CHUNK_SIZE)
            if not chunk:
                break
            chunks.append(chunk)
    return b''.join(chunks)


async def read_file(path):
    """Read a file from disk into a single bytes buffer."""
    return await asyncio.to_thread(_read_chunks, path)


async def get_file(source, request_options=None):
    basefile = os.path.basename(source)
    if is_url(source):
        debug_log(f"Downloading {basefile}...")
        return await download_file(source, request_options)

    debug_log(f"Reading {basefile}...")
    return await read_file(source)


def _literal(source, destination):
    try:
        return wrap_in_comment(extension_of(os.fspath(destination)), source)
    except Exception as e:
        raise ResolutionError("Unable to embed source as literal text", source=source, details=str(e))


async def parse_file(source, destination, request_options=None):
    """
    Resolve one location to text.

    Returns:
        (text, literal) where ``literal`` tells whether the location was
        embedded as a comment instead of being fetched or read.
    """
    if not is_url(source) and is_invalid_path(source):
        return _literal(source, destination), True

    try:
        data = await get_file(source, request_options)
    except (FetchError, OSError) as e:
        debug_log(f"Falling back to literal text for {source!r}: {e}")
        return _literal(source, destination), True

    return data.decode('utf-8', errors='replace'), False


def _base_of(location):
    if is_url(location):
        return location
    return os.path.dirname(os.path.abspath(location))


async def resolve_entry(entry, destination, request_options=None):
    """
    Resolve a source entry into a ResolvedUnit.

    Every resolved location becomes one Segment whose base is the location's
    own directory (or URL), so relative url(...) references in group members
    are looked up next to each member. A Single embedded as literal text
    takes the destination's extension, since its comment syntax follows the
    destination; a literal bound for a ``.js`` bundle therefore skips
    resource inlining like any other script.
    """
    dest = os.fspath(destination)
    dest_ext = extension_of(dest)
    dest_base = os.path.dirname(os.path.abspath(dest))

    if isinstance(entry, Single):
        code, literal = await parse_file(entry.location, dest, request_options)
        if literal:
            return ResolvedUnit(segments=[Segment(code=code, base=dest_base)], minify=False, ext=dest_ext)
        return ResolvedUnit(
            segments=[Segment(code=code, base=_base_of(entry.location))],
            minify=not is_minified_name(entry.location),
            ext=extension_of(entry.location),
        )

    if not isinstance(entry, Group):
        raise ResolutionError(f"Unknown source entry type: {type(entry).__name__}")

    # Members are resolved one after another, in order
    segments = []
    eligible = not is_minified_name(dest)
    for location in entry.locations:
        code, literal = await parse_file(location, dest, request_options)
        segments.append(Segment(code=code, base=dest_base if literal else _base_of(location)))
        if literal or is_minified_name(location):
            eligible = False

    return ResolvedUnit(segments=segments, minify=eligible, ext=dest_ext)
