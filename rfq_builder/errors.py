from __future__ import annotations

from typing import Any


class DocumentValidationError(ValueError):
    """Raised when a payload cannot be normalized into a valid document.

    Carries every violated invariant, not just the first one found.
    """

    def __init__(self, violations: list[dict[str, Any]] | tuple[dict[str, Any], ...], code: str = "validation_failed") -> None:
        self.violations = list(violations)
        self.code = code
        super().__init__(" | ".join(str(v["message"]) for v in self.violations) or "Document is invalid")


class PDFGenerationError(RuntimeError):
    """Raised when PDF generation fails due to branding or drawing errors."""
