"""
Experiment configuration
Defaults, overridable through IPD_* environment variables (or a .env file) and the command line
"""

import os
from dataclasses import asdict, dataclass
from typing import Dict, Optional

from .agents import BASELINE_AGENTS
from .fitness import DEFAULT_WIN_THRESHOLD
from .game import SCORED_ROUNDS
from .utils import load_env_vars


@dataclass
class ExperimentConfig:
    repetitions: int = 1000
    scored_rounds: int = SCORED_ROUNDS
    win_threshold: float = DEFAULT_WIN_THRESHOLD
    baseline: str = "RandomAgent"
    max_concurrent: int = 8
    seed: Optional[int] = None
    output_dir: str = "results"
    verbose: bool = True

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ExperimentConfig":
        """Build a config from defaults overridden by IPD_* variables"""
        load_env_vars(env_file)
        config = cls()
        casts = {
            'repetitions': int,
            'scored_rounds': int,
            'win_threshold': float,
            'baseline': str,
            'max_concurrent': int,
            'seed': int,
            'output_dir': str,
            'verbose': _parse_bool,
        }
        for key, cast in casts.items():
            value = os.environ.get(f"IPD_{key.upper()}")
            if value is None or value == "":
                continue
            try:
                setattr(config, key, cast(value))
            except ValueError as e:
                raise ValueError(f"Invalid value for IPD_{key.upper()}: {value!r}") from e
        config.validate()
        return config

    def validate(self):
        if self.repetitions < 1:
            raise ValueError(f"repetitions must be >= 1, got {self.repetitions}")
        if self.scored_rounds < 1:
            raise ValueError(f"scored_rounds must be >= 1, got {self.scored_rounds}")
        if self.max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {self.max_concurrent}")
        if self.baseline not in BASELINE_AGENTS:
            raise ValueError(f"Unknown baseline '{self.baseline}'. Available: {', '.join(sorted(BASELINE_AGENTS))}")

    def to_dict(self) -> Dict:
        return asdict(self)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")
