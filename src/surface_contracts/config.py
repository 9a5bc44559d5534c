"""Planner configuration contract.

Collects the policy knobs the release process may tune per service: the
overload-vs-named-entry-point strategy, the threshold at which growing
optional parameter lists collapse into a property bag, and the fixed names
of the synthesized formals.
"""

from pathlib import Path
from typing import Optional
import yaml
from pydantic import BaseModel, field_validator, model_validator


DEFAULT_CONFIG_FILE = "surface-plan.yaml"

STRATEGY_OVERLOADS = "overloads"
STRATEGY_NAMED = "named-entry-points"
VALID_STRATEGIES = {STRATEGY_OVERLOADS, STRATEGY_NAMED}


class PlannerConfig(BaseModel):
    """Configuration for synthesis and evolution planning."""

    strategy: str = STRATEGY_OVERLOADS
    # None never collapses; otherwise collapse once more optionals than this were added
    optional_parameter_limit: Optional[int] = None
    payload_name: str = "body"
    options_name: str = "options"
    bag_name: str = "parameters"
    cancellation_name: str = "cancellation"
    entry_point_suffix: str = "V"

    model_config = {"frozen": True}

    @field_validator('strategy')
    def validate_strategy(cls, v):
        if v not in VALID_STRATEGIES:
            raise ValueError(f"strategy must be one of {sorted(VALID_STRATEGIES)}")
        return v

    @field_validator('optional_parameter_limit')
    def validate_limit(cls, v):
        if v is not None and v < 0:
            raise ValueError(f"optional_parameter_limit must be non-negative, got {v}")
        return v

    @field_validator('payload_name', 'options_name', 'bag_name', 'cancellation_name')
    def validate_formal_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Formal names cannot be empty")
        return v.strip()

    @model_validator(mode='after')
    def validate_distinct_names(self):
        names = [self.payload_name, self.options_name, self.bag_name, self.cancellation_name]
        if len(set(names)) != len(names):
            raise ValueError(f"Synthesized formal names must be distinct, got {names}")
        return self

    @property
    def named_entry_points(self) -> bool:
        return self.strategy == STRATEGY_NAMED

    @classmethod
    def load(cls, path: Optional[Path] = None) -> 'PlannerConfig':
        """Load planner configuration.

        Args:
            path: YAML file to read; defaults are used when None

        Returns:
            PlannerConfig instance

        Raises:
            FileNotFoundError: If an explicit path doesn't exist
            ValueError: If the file is invalid
        """
        if path is None:
            return cls()
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Planner config not found at {path}")
        return cls.from_yaml(path)

    @classmethod
    def from_yaml(cls, path: Path) -> 'PlannerConfig':
        """Load from a specific YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls(**(data or {}))

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> 'PlannerConfig':
        """Load from YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls(**(data or {}))

    def to_yaml(self, path: Path) -> None:
        """Save to a specific YAML file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.safe_dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)

    def to_yaml_string(self) -> str:
        """Export to YAML string."""
        return yaml.safe_dump(self.model_dump(), default_flow_style=False, sort_keys=False)


__all__ = [
    "PlannerConfig",
    "DEFAULT_CONFIG_FILE",
    "STRATEGY_OVERLOADS",
    "STRATEGY_NAMED",
    "VALID_STRATEGIES",
]
