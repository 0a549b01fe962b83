"""Exception types raised by the k-mer frequency engine.

Invalid nucleotide symbols inside a sequence are never errors; they only
reset the rolling k-mer window. I/O problems surface as the builtin OSError
family and are not wrapped.
"""


class KfreqError(Exception):
    """Base class for all errors raised by kfreq."""


class ConfigurationError(KfreqError, ValueError):
    """Bad run parameters (k out of range, count dtype too narrow, ...)."""


class FormatError(KfreqError, ValueError):
    """A persisted count table could not be decoded."""
