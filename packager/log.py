"""
Console logging for the packager.

Everything goes to stderr so that bundle output piped through stdout stays
clean. Debug messages only show up in verbose mode.
"""
import os
import sys

_VERBOSE = False


def set_verbose(value):
    """Set the global verbose flag."""
    global _VERBOSE
    _VERBOSE = value


def is_verbose():
    """Verbose if set explicitly, or if DEBUG names this tool (DEBUG=fepack)."""
    if _VERBOSE:
        return True
    names = [n.strip() for n in os.environ.get("DEBUG", "").split(",")]
    return "fepack" in names or "*" in names


def log(message):
    """Log informational messages to stderr."""
    print(f"\033[92m\033[1mINFO:\033[0m {message}", file=sys.stderr)


def warn(message):
    """Log a warning to stderr."""
    print(f"\033[93m\033[1mWARN:\033[0m {message}", file=sys.stderr)


def debug_log(message):
    """Log a debug message to stderr if verbose mode is enabled."""
    if is_verbose():
        print(f"\033[94mDEBUG:\033[0m {message}", file=sys.stderr)
