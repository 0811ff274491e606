# ==========================================
# CONFIGURATION
# ==========================================
import copy
import json
import os
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError

CONFIG_FILE = "fepack.json"


def deep_merge(base, override):
    """
    Recursively merge ``override`` into a copy of ``base``.

    Nested dicts are merged key by key; any other value in ``override``
    replaces the one in ``base``. Neither argument is modified.
    """
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class PackagerOptions(BaseModel):
    """
    Options for one bundle() call.

    Keys other than the ones declared here are kept and handed to the
    watcher when ``watch`` is on.
    """
    model_config = ConfigDict(extra="allow")

    minify: bool = False
    watch: bool = False
    js: Dict[str, Any] = Field(default_factory=dict)
    css: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def coerce(cls, value):
        """Accept None, a plain dict, or an existing PackagerOptions."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            try:
                return cls(**value)
            except ValidationError as e:
                raise ConfigurationError("Invalid packager options", details=str(e))
        raise ConfigurationError(
            f"Options must be a dict, got {type(value).__name__}",
            suggestion="Pass e.g. {'minify': True, 'watch': False}",
        )

    def watcher_overrides(self) -> Dict[str, Any]:
        """Everything the caller passed, as a dict to merge over watcher defaults."""
        # model_dump() includes the extra keys
        return self.model_dump(exclude={"js", "css"})


class WatchOptions(BaseModel):
    """Settings for the file-system watcher."""
    model_config = ConfigDict(extra="ignore")

    persistent: bool = True
    ignore_initial: bool = True
    recursive: bool = True
    use_polling: bool = False
    interval: float = 1.0
    ignored: List[str] = Field(default_factory=list)

    @classmethod
    def from_options(cls, options: PackagerOptions):
        """Watcher defaults with the user's options merged on top."""
        merged = deep_merge(cls().model_dump(), options.watcher_overrides())
        try:
            return cls(**merged)
        except ValidationError as e:
            raise ConfigurationError("Invalid watcher options", details=str(e))


class BuildConfig(BaseModel):
    """A build described in a JSON file, as used by the command line."""
    sources: List[Union[str, List[str]]] = Field(default_factory=list)
    destination: Optional[str] = None
    options: PackagerOptions = Field(default_factory=PackagerOptions)
    request_options: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def load(cls, path=CONFIG_FILE):
        """Load a build config from a JSON file."""
        if not os.path.exists(path):
            raise ConfigurationError(
                f"Config file not found: {path}",
                suggestion="Run 'fepack init' to create one",
            )
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Config file is not valid JSON: {path}", details=str(e))
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config file: {path}", details=str(e))
