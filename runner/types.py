from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class StepResult:
    """Outcome of one smoke step."""

    name: str
    ok: bool
    elapsed_ms: float
    detail: dict = field(default_factory=dict)


class SmokeError(RuntimeError):
    """Raised when the smoke flow cannot proceed (e.g., health never ready)."""


class AuthError(SmokeError):
    """Raised when the proxy refuses the Webflow token."""


class SitesError(SmokeError):
    """Raised when listing sites fails or returns nothing usable."""


class ExportError(SmokeError):
    """Raised when the asset CSV export fails or is malformed."""
