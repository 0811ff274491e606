"""
Inlining of external resources referenced from style sheets.

Every ``url(...)`` reference is replaced by a base64 data URI. References are
resolved one at a time, in the order they appear. If any of them cannot be
resolved the entry is left exactly as it was: partially inlined output is
never produced.
"""
import base64
import os
import re
from urllib.parse import urljoin

import filetype

from .errors import InliningError, PackagerError
from .log import debug_log
from .resolver import download_file, is_url, read_file
from .result import Err, ErrorKind, Ok, TransformError

URL_REFERENCE_RE = re.compile(r'url\s*\(\s*\'?"?([^\s"\']*)\'?"?\s*\)')
_REMOTE_RE = re.compile(r'^(?:https?:)?//', re.IGNORECASE)
_SVG_COMMENT_RE = re.compile(r'<!--[\s\S]*?-->')
_SVG_RE = re.compile(
    r'^\s*(?:<\?xml[^>]*>\s*)?'
    r'(?:<!doctype svg[^>]*>\s*)?'
    r'(?:<svg[^>]*>[\s\S]*</svg>|<svg[^/>]*/\s*>)\s*$',
    re.IGNORECASE,
)

SVG_MIME = 'image/svg+xml'


def is_svg(text):
    """True when ``text`` is an SVG document."""
    return bool(_SVG_RE.match(_SVG_COMMENT_RE.sub('', text)))


def detect_mime(data):
    """Media type of ``data`` from its binary signature, or from SVG markup."""
    kind = filetype.guess(data)
    if kind is not None:
        return kind.mime
    if is_svg(data.decode('utf-8', errors='replace')):
        return SVG_MIME
    raise InliningError("Unknown media type", details=f"{len(data)} bytes with no known signature")


def to_data_uri(data, mime):
    return "url('data:{};charset=utf-8;base64,{}')".format(
        mime, base64.b64encode(data).decode('ascii'))


async def fetch_resource(reference, base, request_options=None):
    """Bytes of one url(...) reference, resolved against ``base``."""
    if not reference:
        raise InliningError("Empty url() reference")

    if _REMOTE_RE.match(reference):
        return await download_file(reference, request_options)
    if base and is_url(base):
        return await download_file(urljoin(base, reference), request_options)

    # Query strings and fragments (font.woff?v=2#iefix) mean nothing on disk
    path = re.split(r'[?#]', reference, maxsplit=1)[0]
    # /img/a.png is still relative to the source's directory, not the filesystem root
    return await read_file(os.path.join(base or os.getcwd(), path.lstrip('/\\')))


async def inline_resources(code, base, request_options=None):
    """
    Replace every url(...) reference in ``code`` with a data URI.

    Returns:
        Ok(new_code), or Err(TransformError) describing the first failure.
    """
    matches = list(URL_REFERENCE_RE.finditer(code))
    if not matches:
        return Ok(code)

    pieces = []
    last = 0
    for match in matches:
        reference = match.group(1).strip()
        if reference.lower().startswith('data:'):
            continue

        try:
            data = await fetch_resource(reference, base, request_options)
            mime = detect_mime(data)
        except InliningError as e:
            return Err(TransformError(kind=ErrorKind.MEDIA_TYPE_ERROR, message=e.message,
                                      details=e.details, source=reference))
        except PackagerError as e:
            return Err(TransformError(kind=ErrorKind.FETCH_ERROR, message=e.message,
                                      details=e.details, source=reference))
        except OSError as e:
            return Err(TransformError(kind=ErrorKind.READ_ERROR, message=str(e), source=reference))
        except Exception as e:
            return Err(TransformError(kind=ErrorKind.INLINE_ERROR, message=str(e), source=reference))

        pieces.append(code[last:match.start()])
        pieces.append(to_data_uri(data, mime))
        last = match.end()

    pieces.append(code[last:])
    return Ok(''.join(pieces))


async def encode_external_resources(code, base, request_options=None):
    """Inline resources in ``code``, or return it unchanged if anything goes wrong."""
    result = await inline_resources(code, base, request_options)
    if result.is_err():
        debug_log(f"Skipping resource inlining: {result.error}")
    return result.unwrap_or(code)


async def encode_unit_resources(unit, request_options=None):
    """
    Inline resources in every segment of a resolved unit, each against its own base.

    One failing segment leaves the whole unit's code unchanged.
    """
    inlined = []
    for segment in unit.segments:
        result = await inline_resources(segment.code, segment.base, request_options)
        if result.is_err():
            debug_log(f"Skipping resource inlining: {result.error}")
            return unit.code
        inlined.append(result.unwrap_or(segment.code))
    return '\n'.join(inlined)
