"""Engine configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Mapping, Optional

from surveylogic.functions import FunctionRegistry, default_registry

DEFAULT_MAX_PASSES = 10


@dataclass
class EngineConfig:
    """
    Tunables for one engine instance.

    Properties:
        max_passes:
            Fixed-point iteration cap for one recompute pass; also the cap
            on trigger-driven writes per top-level set_value call
        clock:
            Returns today's date (injected for tests)
        functions:
            Function library available to expressions
    """

    max_passes: int = DEFAULT_MAX_PASSES
    clock: Callable[[], date] = date.today
    functions: FunctionRegistry = field(default_factory=default_registry)

    def __post_init__(self):
        if self.max_passes < 1:
            raise ValueError(f"max_passes must be at least 1, got {self.max_passes}")

    @classmethod
    def from_mapping(cls, settings: Optional[Mapping[str, Any]], **overrides) -> "EngineConfig":
        """Build a config from a survey's metadata block (``maxPasses``)."""
        settings = settings or {}
        kwargs = {}
        if settings.get("maxPasses") is not None:
            kwargs["max_passes"] = int(settings["maxPasses"])
        kwargs.update(overrides)
        return cls(**kwargs)
