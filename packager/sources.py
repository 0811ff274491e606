"""
Source entries and the units they resolve to.

A source entry is either a single location (URL, file path or literal text)
or an ordered group of locations that are concatenated and treated as one
unit. Entries are normalized once, up front, so the rest of the pipeline
dispatches on the variant instead of inspecting raw types.
"""
import os
from typing import List, Optional, Tuple, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict

from .errors import ConfigurationError


class Single(BaseModel):
    model_config = ConfigDict(frozen=True)

    location: str

    @property
    def locations(self) -> Tuple[str, ...]:
        return (self.location,)

    @property
    def label(self) -> str:
        return os.path.basename(self.location) or self.location


class Group(BaseModel):
    model_config = ConfigDict(frozen=True)

    locations: Tuple[str, ...]

    @property
    def label(self) -> str:
        return ", ".join(os.path.basename(loc) or loc for loc in self.locations)


SourceEntry = Union[Single, Group]


class Segment(BaseModel):
    """The text of one resolved location."""
    code: str
    base: Optional[str] = None  # where relative url(...) references are looked up


class ResolvedUnit(BaseModel):
    """Text of one source entry plus what the rest of the pipeline needs to know about it."""
    segments: List[Segment]
    minify: bool
    ext: str

    @property
    def code(self) -> str:
        return '\n'.join(segment.code for segment in self.segments)


def _as_location(value, index):
    if isinstance(value, os.PathLike):
        value = os.fspath(value)
    if not isinstance(value, str):
        raise ConfigurationError(
            f"Source #{index} must be a string, path, or list of them",
            source=repr(value),
        )
    return value


def to_entry(raw, index=0) -> SourceEntry:
    """Turn one raw source (string, path, or list of them) into a SourceEntry."""
    if isinstance(raw, (Single, Group)):
        return raw
    if isinstance(raw, (list, tuple)):
        if not raw:
            raise ConfigurationError(f"Source group #{index} is empty")
        return Group(locations=tuple(_as_location(item, index) for item in raw))
    return Single(location=_as_location(raw, index))


def normalize_sources(sources) -> List[SourceEntry]:
    """Normalize the configured source list, keeping its order."""
    if isinstance(sources, (str, os.PathLike)):
        sources = [sources]
    if not isinstance(sources, (list, tuple)):
        raise ConfigurationError(
            f"Sources must be a list, got {type(sources).__name__}",
        )
    return [to_entry(raw, i) for i, raw in enumerate(sources)]


def extension_of(location: str) -> str:
    """
    Extension tag of a location: the text after the last dot of its name.

    For URLs only the path counts, so ``app.js?v=2`` is still ``js``.
    """
    if "://" in location or location.startswith("//"):
        location = urlparse(location).path
    return location.split(".")[-1].lower()


def is_minified_name(location: str) -> bool:
    """True for names like ``vendor.min.js`` that are already minified."""
    if "://" in location or location.startswith("//"):
        location = urlparse(location).path
    parts = location.split(".")
    return len(parts) >= 2 and parts[-2].lower() == "min"
