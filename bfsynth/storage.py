"""
BFSynth Genome Library

This module defines the genome repository port used to persist solved
programs and to find seed genomes for new runs, the StoredGenome record
schema with its validating decoder, and two adapters: an in-memory one
and a JSON-file one.
"""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import GenomeDecodeError, GenomeNotFoundError
from .eval import Individual
from .tasks import DataSet, infer_task_name, task_similarity

logger = logging.getLogger(__name__)

# Minimum similarity for a stored genome to be offered as a seed
SIMILARITY_THRESHOLD = 0.1


@dataclass(frozen=True)
class StoredGenome:
    """A program saved together with the task it was evolved for."""
    id: str
    task_name: str
    train_inputs: str
    train_targets: str
    program_code: str
    fitness: float
    train_accuracy: float
    program_length: int
    generation_found: int
    created_at: str
    updated_at: str
    task_description: Optional[str] = None
    test_inputs: Optional[str] = None
    test_targets: Optional[str] = None
    test_accuracy: Optional[float] = None

    @property
    def train(self) -> DataSet:
        return DataSet(self.train_inputs, self.train_targets)

    @property
    def test(self) -> DataSet:
        return DataSet(self.test_inputs or '', self.test_targets or '')

    def to_record(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> 'StoredGenome':
        """
        Decode a storage record.

        Args:
            record: Mapping as read from storage

        Returns:
            The decoded genome

        Raises:
            GenomeDecodeError: If a required field is missing or a field has
                the wrong type
        """
        if not isinstance(record, dict):
            raise GenomeDecodeError('<record>', f"expected a mapping, got {type(record).__name__}")

        record_id = record.get('id') if isinstance(record.get('id'), str) else None
        values: Dict[str, Any] = {}

        for f in fields(cls):
            optional = f.default is None
            if f.name not in record or record[f.name] is None:
                if optional:
                    values[f.name] = None
                    continue
                raise GenomeDecodeError(f.name, "missing required field", record_id)
            values[f.name] = _decode_field(f.name, record[f.name], _FIELD_TYPES[f.name], record_id)

        if values['program_length'] != len(values['program_code']):
            raise GenomeDecodeError(
                'program_length',
                f"{values['program_length']} does not match program length {len(values['program_code'])}",
                record_id)

        return cls(**values)


_FIELD_TYPES = {
    'id': str, 'task_name': str, 'train_inputs': str, 'train_targets': str,
    'program_code': str, 'fitness': float, 'train_accuracy': float,
    'program_length': int, 'generation_found': int, 'created_at': str,
    'updated_at': str, 'task_description': str, 'test_inputs': str,
    'test_targets': str, 'test_accuracy': float,
}


def _decode_field(name: str, value: Any, expected: type, record_id: Optional[str]) -> Any:
    # bool is an int subclass but never a valid number here
    if isinstance(value, bool):
        raise GenomeDecodeError(name, "expected a number, got bool", record_id)
    if expected is float and isinstance(value, (int, float)):
        return float(value)
    if expected is int and isinstance(value, int):
        return value
    if expected is str and isinstance(value, str):
        return value
    raise GenomeDecodeError(name, f"expected {expected.__name__}, got {type(value).__name__}", record_id)


@dataclass(frozen=True)
class TaskStats:
    """Per-task counts in the library."""
    task_name: str
    count: int
    best_accuracy: float


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_stored_genome(individual: Individual, train: DataSet, test: DataSet,
                       generation_found: int, task_name: Optional[str] = None) -> StoredGenome:
    """Build the record for an individual found on a task."""
    name = task_name or infer_task_name(train)
    timestamp = _now()
    has_test = not test.is_empty()

    return StoredGenome(
        id=f"genome_{uuid.uuid4().hex[:16]}",
        task_name=name,
        task_description=f"Task: {name}",
        train_inputs=train.inputs,
        train_targets=train.targets,
        test_inputs=test.inputs if has_test else None,
        test_targets=test.targets if has_test else None,
        program_code=individual.program,
        fitness=individual.fitness,
        train_accuracy=individual.train_accuracy,
        test_accuracy=individual.test_accuracy if has_test else None,
        program_length=len(individual.program),
        generation_found=generation_found,
        created_at=timestamp,
        updated_at=timestamp,
    )


class GenomeRepository(ABC):
    """
    Persistence port for solved programs.

    Adapters implement the four storage primitives; ranking and similarity
    queries are shared.
    """

    @abstractmethod
    def _put(self, genome: StoredGenome) -> None:
        """Store a genome."""

    @abstractmethod
    def _remove(self, genome_id: str) -> bool:
        """Remove a genome; return False if the id is unknown."""

    @abstractmethod
    def _all(self) -> List[StoredGenome]:
        """All stored genomes, in insertion order."""

    def save(self, individual: Individual, train: DataSet, test: DataSet,
             generation_found: int, task_name: Optional[str] = None) -> StoredGenome:
        """
        Save an individual found on a task.

        Args:
            individual: The scored individual
            train: Train split of the task
            test: Test split of the task (may be empty)
            generation_found: Generation the individual appeared in
            task_name: Explicit task name (inferred from the data if None)

        Returns:
            The stored record
        """
        genome = make_stored_genome(individual, train, test, generation_found, task_name)
        self._put(genome)
        logger.info(f"Saved genome {genome.id} for task {genome.task_name!r}: "
                    f"{genome.program_code!r} (train={genome.train_accuracy:.1f}%)")
        return genome

    def list_all(self, limit: int = 50) -> List[StoredGenome]:
        """All genomes by train accuracy, best first."""
        return _ranked(self._all())[:limit]

    def best_for_task(self, train: DataSet, test: DataSet, limit: int = 10) -> List[StoredGenome]:
        """Genomes stored under the same inferred task name, best first."""
        name = infer_task_name(train)
        return _ranked(g for g in self._all() if g.task_name == name)[:limit]

    def similar_tasks(self, train: DataSet, test: DataSet, limit: int = 20) -> List[StoredGenome]:
        """Genomes from tasks similar to this one, most similar first."""
        name = infer_task_name(train)
        scored = []
        for genome in _ranked(self._all()):
            similarity = task_similarity(name, genome.task_name, train, genome.train)
            if similarity > SIMILARITY_THRESHOLD:
                scored.append((similarity, genome))

        scored.sort(key=lambda item: item[0], reverse=True)
        return [genome for _, genome in scored[:limit]]

    def delete(self, genome_id: str) -> None:
        """
        Delete a stored genome.

        Raises:
            GenomeNotFoundError: If no genome has this id
        """
        if not self._remove(genome_id):
            raise GenomeNotFoundError(genome_id)
        logger.info(f"Deleted genome {genome_id}")

    def task_stats(self) -> List[TaskStats]:
        """Genome count and best train accuracy per task name."""
        stats: Dict[str, TaskStats] = {}
        for genome in self._all():
            current = stats.get(genome.task_name)
            if current is None:
                stats[genome.task_name] = TaskStats(genome.task_name, 1, genome.train_accuracy)
            else:
                stats[genome.task_name] = TaskStats(
                    genome.task_name, current.count + 1,
                    max(current.best_accuracy, genome.train_accuracy))
        return list(stats.values())


def _ranked(genomes: Iterable[StoredGenome]) -> List[StoredGenome]:
    return sorted(genomes, key=lambda g: g.train_accuracy, reverse=True)


def seed_programs(genomes: Iterable[StoredGenome]) -> List[str]:
    """Program strings of stored genomes, deduplicated, order kept."""
    seen = set()
    programs = []
    for genome in genomes:
        if genome.program_code not in seen:
            seen.add(genome.program_code)
            programs.append(genome.program_code)
    return programs


class InMemoryGenomeRepository(GenomeRepository):
    """Repository held in a dict; contents are lost with the process."""

    def __init__(self, genomes: Iterable[StoredGenome] = ()):
        self._genomes: Dict[str, StoredGenome] = {g.id: g for g in genomes}

    def _put(self, genome: StoredGenome) -> None:
        self._genomes[genome.id] = genome

    def _remove(self, genome_id: str) -> bool:
        return self._genomes.pop(genome_id, None) is not None

    def _all(self) -> List[StoredGenome]:
        return list(self._genomes.values())


class JsonGenomeRepository(GenomeRepository):
    """
    Repository stored as a JSON file.

    The file holds {"version": 1, "genomes": [record, ...]}. It is read on
    every query and rewritten on every change. Every record is decoded with
    StoredGenome.from_record(), so a corrupt file fails loudly with
    GenomeDecodeError.
    """

    FORMAT_VERSION = 1

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> List[StoredGenome]:
        if not self.path.exists():
            return []

        with open(self.path, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise GenomeDecodeError('<file>', f"{self.path} is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get('genomes'), list):
            raise GenomeDecodeError('genomes', f"{self.path} does not hold a genome list")

        return [StoredGenome.from_record(record) for record in data['genomes']]

    def _write(self, genomes: List[StoredGenome]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            'version': self.FORMAT_VERSION,
            'genomes': [g.to_record() for g in genomes],
        }
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w') as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(self.path)

    def _put(self, genome: StoredGenome) -> None:
        genomes = self._load()
        genomes.append(genome)
        self._write(genomes)

    def _remove(self, genome_id: str) -> bool:
        genomes = self._load()
        kept = [g for g in genomes if g.id != genome_id]
        if len(kept) == len(genomes):
            return False
        self._write(kept)
        return True

    def _all(self) -> List[StoredGenome]:
        return self._load()
