"""Static validator for FlowDot custom-node scripts."""

from flowdot_mcp.validation.config import ValidatorConfig
from flowdot_mcp.validation.findings import Finding, Location, PortDef, ValidatorError, ValidatorLimitError
from flowdot_mcp.validation.report import format_report
from flowdot_mcp.validation.validator import has_blocking, validate

__all__ = [
    "Finding",
    "Location",
    "PortDef",
    "ValidatorConfig",
    "ValidatorError",
    "ValidatorLimitError",
    "format_report",
    "has_blocking",
    "validate",
]
