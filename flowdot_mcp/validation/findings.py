"""Finding data model for the custom-node script validator.

A Finding is one reported issue: which rule family fired (kind), how bad it is
(severity), a self-contained message, and an optional 1-based source location.

Severity semantics:
  error    blocks saving / running the script
  warning  shown to the author, does not block
  info     advisory note
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

Kind = Literal["missing_function", "output_mismatch", "syntax_error", "security", "best_practice"]
Severity = Literal["error", "warning", "info"]

# Report order, most severe first.
SEVERITY_ORDER: tuple[Severity, ...] = ("error", "warning", "info")


@dataclass(frozen=True)
class Location:
    """1-based line / column (columns counted in characters)."""

    line: int
    column: int


@dataclass(frozen=True)
class Finding:
    kind: Kind
    severity: Severity
    message: str
    location: Location | None = None

    @property
    def blocking(self) -> bool:
        return self.severity == "error"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"kind": self.kind, "severity": self.severity, "message": self.message}
        if self.location is not None:
            d["line"] = self.location.line
            d["column"] = self.location.column
        return d


@dataclass(frozen=True)
class PortDef:
    """A declared input or output socket of a custom node."""

    name: str
    data_type: str | None = None

    @classmethod
    def coerce(cls, value: PortDef | Mapping[str, Any]) -> PortDef:
        """Accept a PortDef or a tool-layer dict such as ``{"name": "Total", "dataType": "number"}``."""
        if isinstance(value, PortDef):
            return value
        if isinstance(value, Mapping) and isinstance(value.get("name"), str):
            return cls(name=value["name"], data_type=value.get("dataType"))
        raise ValueError(f"Port definition must have a string 'name': {value!r}")


# ---------------------------------------------------------------------------
# Exceptions: the validator itself faulted, not the script
# ---------------------------------------------------------------------------


class ValidatorError(Exception):
    """Internal fault of the validator. Never raised for a bad-but-parseable script."""


class ValidatorLimitError(ValidatorError):
    """The script exceeds a configured resource guard (size or nesting depth)."""
