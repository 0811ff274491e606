# fepack - Core Packager Components
"""
Core modules for the front-end packager:
- errors: Exception hierarchy
- result: Ok/Err results for transforms that fall back to their input
- config: Options, watcher settings and build files (pydantic)
- sources: Source entries and resolved units
- resolver: Fetch / read / literal-fallback resolution of locations
- inliner: url(...) to data URI rewriting for style sheets
- minifiers: Minifier drivers and dispatch
- watcher: Watch mode and the rebuild gate
"""

from .errors import (
    ConfigurationError,
    FetchError,
    InliningError,
    MinifyError,
    PackagerError,
    ResolutionError,
)
from .config import BuildConfig, PackagerOptions, WatchOptions
from .sources import Group, ResolvedUnit, Segment, Single, normalize_sources
from .resolver import resolve_entry, wrap_in_comment
from .inliner import encode_external_resources, encode_unit_resources
from .minifiers import attempt_minify, cleanse, should_minify
from .watcher import RebuildGate, WatchSession

__all__ = [
    'PackagerError',
    'ConfigurationError',
    'ResolutionError',
    'FetchError',
    'InliningError',
    'MinifyError',
    'BuildConfig',
    'PackagerOptions',
    'WatchOptions',
    'Single',
    'Group',
    'ResolvedUnit',
    'Segment',
    'normalize_sources',
    'resolve_entry',
    'wrap_in_comment',
    'encode_external_resources',
    'encode_unit_resources',
    'attempt_minify',
    'cleanse',
    'should_minify',
    'RebuildGate',
    'WatchSession',
]
