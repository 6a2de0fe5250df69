from dataclasses import dataclass, field
from typing import Any, Dict
import yaml


@dataclass
class Config:
    """Configuration object loaded from YAML."""
    data: Dict[str, Any]
    preprocessing: Dict[str, Any] = field(default_factory=dict)
    model: Dict[str, Any] = field(default_factory=dict)
    validation: Dict[str, Any] = field(default_factory=dict)
    tuning: Dict[str, Any] = field(default_factory=dict)
    output: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for key in ("url", "target_col", "positive_class"):
            if key not in self.data:
                raise KeyError(f"Missing required config key: data.{key}")

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with open(path, "r") as f:
            cfg = yaml.safe_load(f)
        return cls(**cfg)
