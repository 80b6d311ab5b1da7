"""Resource guards for the script validator."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ValidatorConfig:
    """Immutable validator limits, optionally loaded from environment variables.

    max_source_bytes:  UTF-8 size cap; the platform rejects scripts over 50 KB anyway.
    max_tree_depth:    syntax-tree nesting cap, keeps the recursive passes well
                       inside the interpreter's recursion limit.
    """

    max_source_bytes: int = 51_200
    max_tree_depth: int = 200

    @classmethod
    def from_env(cls) -> ValidatorConfig:
        return cls(
            max_source_bytes=int(os.getenv("FLOWDOT_MAX_SCRIPT_BYTES", "51200")),
            max_tree_depth=int(os.getenv("FLOWDOT_MAX_SCRIPT_DEPTH", "200")),
        )


DEFAULT_CONFIG = ValidatorConfig()
