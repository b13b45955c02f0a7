"""Error definitions for the Pagewarp translator."""

from __future__ import annotations


class PagewarpError(Exception):
    """Base exception for all custom errors."""


class NoTranslatableContent(PagewarpError):
    """Raised when an extraction produced no text; completes without failing."""


class TargetUnresolved(PagewarpError):
    """Raised when a message could not reach its destination context."""


class TranslationServiceFailure(PagewarpError):
    """Raised when the translation capability rejects a batch."""


class SessionBusy(PagewarpError):
    """Raised when a session is started while another one is in flight."""


class UnsupportedFileTypeError(PagewarpError):
    """Raised when a given file extension is not supported."""


class OverwriteRefusedError(PagewarpError):
    """Raised when attempting to overwrite an output without consent."""


class TranslationProviderConfigurationError(PagewarpError):
    """Raised when the translation provider is misconfigured."""
