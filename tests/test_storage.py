#!/usr/bin/env python3
"""
Tests for the genome library.
"""

import json
import tempfile
import unittest
from pathlib import Path

from bfsynth.errors import GenomeDecodeError, GenomeNotFoundError
from bfsynth.eval import evaluate
from bfsynth.storage import (
    InMemoryGenomeRepository, JsonGenomeRepository, StoredGenome, seed_programs,
)
from bfsynth.tasks import DataSet, EMPTY_DATASET

DOUBLE = DataSet('1,2,3,4', '2,4,6,8')
DOUBLE_TEST = DataSet('5,6', '10,12')
INCREMENT = DataSet('0,1,2,5', '1,2,3,6')
ECHO = DataSet('1,5,10,15', '1,5,10,15')


def scored(program, train, test=EMPTY_DATASET):
    return evaluate(program, train.to_cases(), test.to_cases())


class RepositoryContract:
    """Behaviour shared by every repository adapter."""

    def make_repository(self):
        raise NotImplementedError

    def setUp(self):
        self.repository = self.make_repository()

    def test_save_and_list(self):
        genome = self.repository.save(scored(',[->++<]>.', DOUBLE, DOUBLE_TEST),
                                      DOUBLE, DOUBLE_TEST, generation_found=12)

        self.assertTrue(genome.id.startswith('genome_'))
        self.assertEqual(genome.task_name, 'Double')
        self.assertEqual(genome.program_length, 10)
        self.assertEqual(genome.train_accuracy, 100.0)
        self.assertEqual(genome.test_accuracy, 100.0)
        self.assertEqual(genome.test_inputs, '5,6')
        self.assertEqual(genome.generation_found, 12)
        self.assertEqual(self.repository.list_all(), [genome])

    def test_save_without_test_split(self):
        genome = self.repository.save(scored(',+.', INCREMENT), INCREMENT, EMPTY_DATASET, 3)
        self.assertIsNone(genome.test_inputs)
        self.assertIsNone(genome.test_accuracy)
        self.assertTrue(genome.test.is_empty())

    def test_explicit_task_name(self):
        genome = self.repository.save(scored(',.', ECHO), ECHO, EMPTY_DATASET, 0, task_name='Mirror')
        self.assertEqual(genome.task_name, 'Mirror')

    def test_ranking_and_limit(self):
        self.repository.save(scored('+.', DOUBLE), DOUBLE, EMPTY_DATASET, 1)
        best = self.repository.save(scored(',[->++<]>.', DOUBLE), DOUBLE, EMPTY_DATASET, 5)
        self.repository.save(scored(',.', ECHO), ECHO, EMPTY_DATASET, 2)

        ranked = self.repository.list_all()
        self.assertEqual(ranked[0].id, best.id)
        accuracies = [g.train_accuracy for g in ranked]
        self.assertEqual(accuracies, sorted(accuracies, reverse=True))
        self.assertEqual(len(self.repository.list_all(limit=2)), 2)

    def test_best_for_task(self):
        self.repository.save(scored(',[->++<]>.', DOUBLE), DOUBLE, EMPTY_DATASET, 5)
        self.repository.save(scored(',.', ECHO), ECHO, EMPTY_DATASET, 2)

        found = self.repository.best_for_task(DataSet('2,3', '4,6'), EMPTY_DATASET)
        self.assertEqual([g.task_name for g in found], ['Double'])

    def test_similar_tasks(self):
        self.repository.save(scored(',+.', INCREMENT), INCREMENT, EMPTY_DATASET, 1)
        self.repository.save(scored(',.', ECHO), ECHO, EMPTY_DATASET, 2)

        similar = self.repository.similar_tasks(DOUBLE, EMPTY_DATASET)
        self.assertEqual(similar[0].task_name, 'Increment')
        self.assertEqual(seed_programs(similar)[0], ',+.')

    def test_delete(self):
        genome = self.repository.save(scored(',.', ECHO), ECHO, EMPTY_DATASET, 2)
        self.repository.delete(genome.id)
        self.assertEqual(self.repository.list_all(), [])

        with self.assertRaises(GenomeNotFoundError) as ctx:
            self.repository.delete(genome.id)
        self.assertIn(genome.id, str(ctx.exception))

    def test_task_stats(self):
        self.repository.save(scored('+.', DOUBLE), DOUBLE, EMPTY_DATASET, 1)
        self.repository.save(scored(',[->++<]>.', DOUBLE), DOUBLE, EMPTY_DATASET, 5)
        self.repository.save(scored(',.', ECHO), ECHO, EMPTY_DATASET, 2)

        stats = {s.task_name: s for s in self.repository.task_stats()}
        self.assertEqual(stats['Double'].count, 2)
        self.assertEqual(stats['Double'].best_accuracy, 100.0)
        self.assertEqual(stats['Echo'].count, 1)


class TestInMemoryRepository(RepositoryContract, unittest.TestCase):

    def make_repository(self):
        return InMemoryGenomeRepository()


class TestJsonRepository(RepositoryContract, unittest.TestCase):

    def make_repository(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = Path(self.tmp.name) / 'library' / 'genomes.json'
        return JsonGenomeRepository(self.path)

    def test_persists_across_instances(self):
        genome = self.repository.save(scored(',.', ECHO), ECHO, EMPTY_DATASET, 2)
        reopened = JsonGenomeRepository(self.path)
        self.assertEqual(reopened.list_all(), [genome])

        with open(self.path) as f:
            data = json.load(f)
        self.assertEqual(data['version'], 1)
        self.assertEqual(data['genomes'][0]['program_code'], ',.')

    def test_missing_file_is_empty(self):
        self.assertEqual(self.repository.list_all(), [])

    def test_corrupt_file(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({'genomes': [{'id': 'genome_x'}]}))
        with self.assertRaises(GenomeDecodeError):
            self.repository.list_all()

        self.path.write_text(json.dumps([1, 2, 3]))
        with self.assertRaises(GenomeDecodeError):
            self.repository.list_all()

    def test_truncated_file(self):
        """A file cut off mid-write is reported as a decode error."""
        self.path.parent.mkdir(parents=True)
        self.path.write_text('{"version": 1, "genomes": [')
        with self.assertRaises(GenomeDecodeError) as ctx:
            self.repository.list_all()
        self.assertEqual(ctx.exception.field, '<file>')
        self.assertIsInstance(ctx.exception.__cause__, json.JSONDecodeError)

        with self.assertRaises(GenomeDecodeError):
            self.repository.delete('genome_x')


class TestStoredGenomeDecoding(unittest.TestCase):
    """Test cases for StoredGenome.from_record."""

    def setUp(self):
        self.record = {
            'id': 'genome_abc',
            'task_name': 'Echo',
            'train_inputs': '1,2',
            'train_targets': '1,2',
            'program_code': ',.',
            'fitness': 99,
            'train_accuracy': 100.0,
            'program_length': 2,
            'generation_found': 4,
            'created_at': '2024-01-01T00:00:00+00:00',
            'updated_at': '2024-01-01T00:00:00+00:00',
        }

    def test_decodes_minimal_record(self):
        genome = StoredGenome.from_record(self.record)
        self.assertEqual(genome.fitness, 99.0)
        self.assertIsInstance(genome.fitness, float)
        self.assertIsNone(genome.test_accuracy)
        self.assertEqual(StoredGenome.from_record(genome.to_record()), genome)

    def test_unknown_fields_ignored(self):
        self.record['extra'] = 'ignored'
        self.assertEqual(StoredGenome.from_record(self.record).id, 'genome_abc')

    def test_missing_field(self):
        del self.record['program_code']
        with self.assertRaises(GenomeDecodeError) as ctx:
            StoredGenome.from_record(self.record)
        self.assertEqual(ctx.exception.field, 'program_code')
        self.assertEqual(ctx.exception.record_id, 'genome_abc')

    def test_wrong_types(self):
        for name, value in [('fitness', 'high'), ('generation_found', 4.5),
                            ('program_code', 12), ('train_accuracy', True),
                            ('test_accuracy', 'n/a')]:
            record = dict(self.record, **{name: value})
            with self.assertRaises(GenomeDecodeError) as ctx:
                StoredGenome.from_record(record)
            self.assertEqual(ctx.exception.field, name)

    def test_length_mismatch(self):
        self.record['program_length'] = 5
        with self.assertRaises(GenomeDecodeError):
            StoredGenome.from_record(self.record)

    def test_not_a_mapping(self):
        with self.assertRaises(GenomeDecodeError):
            StoredGenome.from_record(['genome_abc'])


if __name__ == '__main__':
    unittest.main()
