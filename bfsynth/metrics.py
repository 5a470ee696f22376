"""
BFSynth Metrics

Implements the per-generation output surface and metrics logging:
- GenerationStats snapshot consumed by presentation layers
- Population summary statistics
- Per-generation CSV/JSON logging with plateau detection
"""

import csv
import json
import logging
import time
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from .eval import Individual

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationStats:
    """Snapshot of one generation."""
    generation: int
    best_fitness: float
    average_fitness: float
    best_accuracy: float
    average_accuracy: float
    best_program: str
    train_accuracy: Optional[float] = None
    test_accuracy: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def snapshot(generation: int, population: Sequence[Individual]) -> GenerationStats:
    """
    Build the GenerationStats for a population sorted best-first.

    An empty population gives zeros and an empty best program.
    """
    if not population:
        return GenerationStats(generation, 0.0, 0.0, 0.0, 0.0, '')

    best = population[0]
    return GenerationStats(
        generation=generation,
        best_fitness=best.fitness,
        average_fitness=float(np.mean([ind.fitness for ind in population])),
        best_accuracy=best.accuracy,
        average_accuracy=float(np.mean([ind.accuracy for ind in population])),
        best_program=best.program,
        train_accuracy=best.train_accuracy,
        test_accuracy=best.test_accuracy,
    )


def summarize_population(population: Sequence[Individual]) -> Dict[str, Any]:
    """Summary statistics of a population's fitness and program sizes."""
    if not population:
        return {}

    fitnesses = np.array([ind.fitness for ind in population], dtype=float)
    sizes = np.array([ind.size() for ind in population], dtype=float)

    return {
        'population_size': len(population),
        'best_fitness': float(fitnesses.max()),
        'worst_fitness': float(fitnesses.min()),
        'mean_fitness': float(fitnesses.mean()),
        'median_fitness': float(np.median(fitnesses)),
        'fitness_std': float(fitnesses.std()),
        'mean_size': float(sizes.mean()),
        'size_range': (int(sizes.min()), int(sizes.max())),
        'unique_programs': len({ind.program for ind in population}),
    }


class MetricsLogger:
    """
    Per-generation metrics logging.

    Appends one CSV row per generation and rewrites a JSON file holding the
    full history.
    """

    def __init__(self, log_dir: str = "logs", experiment_name: str = "bfsynth_run",
                 plateau_window: int = 10, plateau_threshold: float = 0.01):
        """
        Initialize metrics logger.

        Args:
            log_dir: Directory for log files
            experiment_name: Name of the experiment
            plateau_window: Generations inspected by plateau detection
            plateau_threshold: Best-fitness std below which a plateau is reported
        """
        self.log_dir = Path(log_dir)
        self.experiment_name = experiment_name

        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.csv_path = self.log_dir / f"{experiment_name}_metrics.csv"
        self.json_path = self.log_dir / f"{experiment_name}_metrics.json"

        self.metrics_history: List[GenerationStats] = []

        self.plateau_window = plateau_window
        self.plateau_threshold = plateau_threshold

        self._init_csv()

        logger.info(f"Metrics logger initialized: {self.log_dir}")

    def _init_csv(self):
        """Initialize CSV file with headers."""
        if not self.csv_path.exists():
            with open(self.csv_path, 'w', newline='') as f:
                writer = csv.writer(f)
                writer.writerow([f.name for f in fields(GenerationStats)])

    def log_generation(self, stats: GenerationStats) -> bool:
        """
        Log metrics for a generation.

        Args:
            stats: Generation snapshot to log

        Returns:
            True if a plateau is detected after this generation
        """
        self.metrics_history.append(stats)

        with open(self.csv_path, 'a', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(asdict(stats).values())

        self._update_json()

        plateau = self.detect_plateau()
        if plateau:
            logger.info(f"Plateau detected at generation {stats.generation}")
        return plateau

    def _update_json(self):
        """Update JSON file with all metrics."""
        data = {
            'experiment_name': self.experiment_name,
            'timestamp': time.time(),
            'total_generations': len(self.metrics_history),
            'metrics': [m.to_dict() for m in self.metrics_history]
        }

        with open(self.json_path, 'w') as f:
            json.dump(data, f, indent=2)

    def detect_plateau(self) -> bool:
        """Detect if best fitness has stopped moving over the plateau window."""
        if len(self.metrics_history) < self.plateau_window:
            return False

        recent = [m.best_fitness for m in self.metrics_history[-self.plateau_window:]]
        return float(np.std(recent)) < self.plateau_threshold
