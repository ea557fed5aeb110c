"""Error taxonomy for the review workflow.

Every fatal condition surfaces as a PrsiftError subclass so the CLI can print
one line and exit non-zero without knowing which layer failed. Transport
exceptions (GithubException, SDK errors) never cross the core boundary raw.
"""

from __future__ import annotations


class PrsiftError(Exception):
    """Base class for all errors raised by prsift."""


class ConfigError(PrsiftError):
    """Missing credentials or identifiers, detected before any network call."""


class ResolutionError(PrsiftError):
    """No pull request could be parsed, detected or selected."""


class GenerationError(PrsiftError):
    """The model call failed or produced unusable output."""


class NormalizationError(GenerationError):
    """The model's text did not satisfy the JSON output contract."""


class HostError(PrsiftError):
    """A GitHub call failed."""


class AnchorNotInDiffError(HostError):
    """GitHub rejected inline comments whose file/line is not part of the diff."""


class DeliveryError(PrsiftError):
    """Approved findings could not be (fully) delivered to the pull request."""


class RecordError(PrsiftError):
    """The durable review record could not be written."""
