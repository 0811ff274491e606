"""
Error types for the front-end packager.
"""


class PackagerError(Exception):
    """Base exception for packaging errors, with the offending source and a hint."""
    def __init__(self, message, source=None, details=None, suggestion=None):
        self.message = message
        self.source = source  # The location being processed
        self.details = details
        self.suggestion = suggestion  # How to fix it
        super().__init__(self._format_error())

    def _format_error(self):
        """Format the error message with source and suggestion."""
        lines = [self.message]
        if self.source is not None:
            lines.append(f"   > {self.source}")
        if self.details:
            lines.append(f"   Details: {self.details}")
        if self.suggestion:
            lines.append(f"   Hint: {self.suggestion}")
        return "\n".join(lines)


class ConfigurationError(PackagerError):
    """Invalid sources or options."""


class ResolutionError(PackagerError):
    """A source could not be resolved, not even as literal text."""


class FetchError(PackagerError):
    """A network fetch failed."""


class InliningError(PackagerError):
    """An external resource reference could not be inlined."""


class MinifyError(PackagerError):
    """An external minifier failed or is unavailable."""
