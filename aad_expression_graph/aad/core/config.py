# aad/core/config.py
"""
Graph configuration

Settings that change how an ExpressionGraph stores values and treats
registrations. Defaults suit the usual float64 training step.
"""
import os
from dataclasses import dataclass, field, replace
from typing import Any

import numpy as np

DUPLICATE_NAME_POLICIES = ("error", "keep_first", "replace")


def _env_flag(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class GraphConfig:
    """
    Attributes
    ----------
    dtype : numpy dtype
        Storage dtype of every value and adjoint.
    duplicate_names : str
        What add_named_node does when the name is already bound to another node:
          - "error"      : raise DuplicateNameError
          - "keep_first" : ignore the new binding (earlier one stays)
          - "replace"    : rebind the name; handles already held stay valid
    check_finite : bool
        Raise FloatingPointError after forward() if any value holds NaN or inf.
    """
    dtype: Any = field(default=np.float64)
    duplicate_names: str = "error"
    check_finite: bool = False

    def __post_init__(self):
        if self.duplicate_names not in DUPLICATE_NAME_POLICIES:
            raise ValueError(
                f"duplicate_names must be one of {DUPLICATE_NAME_POLICIES}, "
                f"got {self.duplicate_names!r}"
            )
        if not np.issubdtype(np.dtype(self.dtype), np.floating):
            raise TypeError(f"dtype must be a floating point type, got {self.dtype!r}")

    @classmethod
    def from_env(cls, **overrides) -> "GraphConfig":
        """Build a config from AAD_GRAPH_* environment variables, then apply overrides."""
        config = cls()
        policy = os.environ.get("AAD_GRAPH_DUPLICATE_NAMES")
        if policy:
            config = replace(config, duplicate_names=policy.strip().lower())
        check = os.environ.get("AAD_GRAPH_CHECK_FINITE")
        if check:
            config = replace(config, check_finite=_env_flag(check))
        return replace(config, **overrides) if overrides else config
