"""Custom-node script validation pipeline.

    validate(script_source, declared_outputs, declared_inputs) -> list[Finding]

Pure and synchronous: no I/O, no state between calls.  Findings are values:
a bad script never raises.  Only a fault in the validator itself raises
(ValidatorError, or ValidatorLimitError for an over-sized / over-nested script),
so callers can tell "the script is bad" apart from "the validator broke".
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from flowdot_mcp.validation.checks import (
    Check,
    build_context,
    check_best_practices,
    check_entry_point,
    check_outputs,
    check_security,
    check_top_level_returns,
)
from flowdot_mcp.validation.config import DEFAULT_CONFIG, ValidatorConfig
from flowdot_mcp.validation.findings import Finding, PortDef, ValidatorError
from flowdot_mcp.validation.parser import ScriptSyntaxError, parse_script

logger = logging.getLogger(__name__)

PortLike = PortDef | Mapping[str, Any]

# Run order is report order within a severity group.
PIPELINE: tuple[Check, ...] = (
    check_entry_point,
    check_top_level_returns,
    check_outputs,
    check_security,
    check_best_practices,
)


def validate(
    script_source: str,
    declared_outputs: Iterable[PortLike],
    declared_inputs: Iterable[PortLike] = (),
    *,
    config: ValidatorConfig | None = None,
) -> list[Finding]:
    """Validate a custom-node script against its declared ports.

    Raises:
        ValueError: a port definition has no string ``name``.
        ValidatorLimitError: the script exceeds ``config`` limits.
        ValidatorError: internal fault.
    """
    outputs = [PortDef.coerce(p) for p in declared_outputs]
    inputs = [PortDef.coerce(p) for p in declared_inputs]

    try:
        script = parse_script(script_source, config or DEFAULT_CONFIG)
    except ScriptSyntaxError as e:
        logger.debug("Script failed to parse: %s", e.message)
        return [Finding("syntax_error", "error", f"Syntax error: {e.message}", e.location)]
    except RecursionError as e:
        raise ValidatorError("Script is too deeply nested to parse") from e

    ctx = build_context(script, outputs, inputs)
    findings: list[Finding] = []
    try:
        for check in PIPELINE:
            findings.extend(check(ctx))
    except RecursionError as e:
        raise ValidatorError("Script is too deeply nested to analyse") from e

    logger.debug(
        "Validated script (%d chars): %d findings, %d blocking",
        len(script_source), len(findings), sum(f.blocking for f in findings),
    )
    return findings


def has_blocking(findings: Iterable[Finding]) -> bool:
    return any(f.blocking for f in findings)
