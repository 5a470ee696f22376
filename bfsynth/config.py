"""
BFSynth Configuration

This module provides the GA settings, interpreter limits and logging
setup used across the system.
"""

import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional

from .core import DEFAULT_MAX_STEPS
from .errors import SettingsError


@dataclass
class GASettings:
    """Genetic algorithm parameters."""
    population_size: int = 50
    mutation_rate: float = 0.02
    crossover_rate: float = 0.8
    elitism: int = 2
    max_generations: int = 1000
    max_program_length: int = 100

    def validate(self) -> 'GASettings':
        """
        Check the engine preconditions.

        Returns:
            self, so calls can be chained

        Raises:
            SettingsError: naming the first offending field
        """
        if self.population_size < 1:
            raise SettingsError('population_size', f"must be >= 1, got {self.population_size}")
        if not 0.0 <= self.mutation_rate <= 1.0:
            raise SettingsError('mutation_rate', f"must be in [0, 1], got {self.mutation_rate}")
        if not 0.0 <= self.crossover_rate <= 1.0:
            raise SettingsError('crossover_rate', f"must be in [0, 1], got {self.crossover_rate}")
        if not 0 <= self.elitism <= self.population_size:
            raise SettingsError(
                'elitism', f"must be in [0, population_size={self.population_size}], got {self.elitism}")
        if self.max_generations < 0:
            raise SettingsError('max_generations', f"must be >= 0, got {self.max_generations}")
        if self.max_program_length < 1:
            raise SettingsError('max_program_length', f"must be >= 1, got {self.max_program_length}")
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GASettings':
        """Build settings from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class InterpreterConfig:
    """Per-case limits for the tape interpreter."""
    max_steps: int = DEFAULT_MAX_STEPS


@dataclass
class BFSynthConfig:
    """Main configuration for the BFSynth system."""
    ga: GASettings = field(default_factory=GASettings)
    interpreter: InterpreterConfig = field(default_factory=InterpreterConfig)
    log_level: str = "INFO"


# Global configuration instance
_config: Optional[BFSynthConfig] = None


def get_config() -> BFSynthConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = BFSynthConfig()
    return _config


def set_config(config: BFSynthConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def setup_logging(level: str = "INFO") -> None:
    """Setup logging for BFSynth."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
