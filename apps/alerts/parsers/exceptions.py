"""Errors raised while normalizing an alert payload."""


class AlertParseError(ValueError):
    """Normalization of a single payload failed.

    ``stage`` names where it failed: "detection", "selection" or "extraction".
    """

    stage = "extraction"

    def __init__(self, message: str, stage: str | None = None) -> None:
        super().__init__(message)
        if stage:
            self.stage = stage


class UnknownSourceError(AlertParseError):
    """An explicitly requested source name is not registered."""

    stage = "selection"


class SourceMismatchError(AlertParseError):
    """An explicitly requested parser cannot accept the payload."""

    stage = "selection"


class EmptyPayloadError(AlertParseError):
    """A matched payload lacks a structure that must have at least one element."""

    stage = "extraction"
