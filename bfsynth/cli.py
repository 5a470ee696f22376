#!/usr/bin/env python3
"""Command-line interface for BFSynth."""

import argparse
import json
import sys
import time
from pathlib import Path
from typing import List, Optional, Tuple

from .config import GASettings, get_config, setup_logging
from .core import output_bytes
from .errors import BFSynthError, GenomeNotFoundError, SettingsError
from .eval import Individual, evaluate
from .evolve import EvolutionEngine
from .metrics import GenerationStats, MetricsLogger
from .storage import JsonGenomeRepository, seed_programs
from .tasks import EMPTY_DATASET, DataSet, get_preset, infer_task_name
from .utils import collect_run_metadata, format_metadata_summary
from . import __version__


# Autosave to the library once train accuracy beats the last save by this much
AUTOSAVE_MARGIN = 10.0


def _build_evolve_parser() -> argparse.ArgumentParser:
    defaults = get_config()
    ga = defaults.ga

    parser = argparse.ArgumentParser(description="Evolve Brainfuck programs that map input bytes to output bytes")
    task = parser.add_argument_group("task")
    task.add_argument("--preset", help="Built-in task (e.g. 'Double Number', 'Increment')")
    task.add_argument("--train-inputs", help="Comma-separated train input bytes, e.g. '1,2,3'")
    task.add_argument("--train-targets", help="Comma-separated train target bytes, e.g. '2,4,6'")
    task.add_argument("--test-inputs", default="", help="Comma-separated test input bytes")
    task.add_argument("--test-targets", default="", help="Comma-separated test target bytes")
    task.add_argument("--strict", action="store_true", help="Reject invalid byte values instead of using 0")

    settings = parser.add_argument_group("GA settings")
    settings.add_argument("--population", type=int, default=ga.population_size, help="Population size")
    settings.add_argument("--mutation-rate", type=float, default=ga.mutation_rate, help="Per-instruction mutation probability")
    settings.add_argument("--crossover-rate", type=float, default=ga.crossover_rate, help="Crossover probability")
    settings.add_argument("--elitism", type=int, default=ga.elitism, help="Individuals copied unchanged each generation")
    settings.add_argument("--gens", type=int, default=ga.max_generations, help="Maximum number of generations")
    settings.add_argument("--max-length", type=int, default=ga.max_program_length, help="Maximum program length")
    settings.add_argument("--max-steps", type=int, default=defaults.interpreter.max_steps, help="Interpreter step budget per case")
    settings.add_argument("--seed", type=int, default=None, help="Random seed")

    output = parser.add_argument_group("output")
    output.add_argument("--library", help="JSON genome library used for seeding and autosave")
    output.add_argument("--log-dir", help="Write per-generation metrics (CSV/JSON) to this directory")
    output.add_argument("--save-bundle", help="Save results bundle to path")
    output.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    return parser


def _resolve_task(args, parser) -> Tuple[DataSet, DataSet]:
    if args.preset:
        try:
            preset = get_preset(args.preset)
        except KeyError as e:
            parser.error(str(e.args[0]))
        return preset.train, preset.test

    if not args.train_inputs or not args.train_targets:
        parser.error("either --preset or both --train-inputs and --train-targets are required")

    test = DataSet(args.test_inputs, args.test_targets)
    return DataSet(args.train_inputs, args.train_targets), test if not test.is_empty() else EMPTY_DATASET


def evolve_main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for bfsynth-evolve command."""
    parser = _build_evolve_parser()
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else get_config().log_level)

    train, test = _resolve_task(args, parser)

    try:
        train_cases = train.to_cases(strict=args.strict)
        test_cases = test.to_cases(strict=args.strict)
    except BFSynthError as e:
        parser.error(str(e))

    if not train_cases:
        parser.error("the train split has no cases")

    ga_settings = GASettings(
        population_size=args.population,
        mutation_rate=args.mutation_rate,
        crossover_rate=args.crossover_rate,
        elitism=args.elitism,
        max_generations=args.gens,
        max_program_length=args.max_length,
    )

    try:
        engine = EvolutionEngine(ga_settings, train_cases, test_cases,
                                 seed=args.seed, max_steps=args.max_steps)
    except SettingsError as e:
        parser.error(str(e))

    repository = JsonGenomeRepository(args.library) if args.library else None
    if repository is not None:
        try:
            seeds = seed_programs(repository.best_for_task(train, test) + repository.similar_tasks(train, test))
        except BFSynthError as e:
            parser.error(f"library {args.library} is corrupt: {e}")
        if seeds:
            engine.set_seed_genomes(seeds)
            print(f"Seeding from library: {len(seeds)} genomes")

    metrics_logger = MetricsLogger(args.log_dir, "bfsynth_run") if args.log_dir else None

    print("BFSynth Evolution")
    print(f"Task: {infer_task_name(train)} ({len(train_cases)} train, {len(test_cases)} test)")
    print(f"Population: {ga_settings.population_size}, elitism={ga_settings.elitism}")
    print(f"Rates: mutation={ga_settings.mutation_rate}, crossover={ga_settings.crossover_rate}")
    print(f"Seed: {args.seed}")
    print("-" * 40)

    last_saved: Optional[Individual] = None

    def on_generation(stats: GenerationStats) -> None:
        nonlocal last_saved

        if metrics_logger is not None:
            metrics_logger.log_generation(stats)

        if args.verbose or stats.generation % 10 == 0:
            print(
                f"Gen {stats.generation:4d}: F_best={stats.best_fitness:.2f}, "
                f"F_avg={stats.average_fitness:.2f}, train={stats.train_accuracy:.1f}%, "
                f"test={stats.test_accuracy:.1f}%, best={stats.best_program!r}"
            )

        best = engine.get_best_individual()
        if repository is not None and best is not None and (
                last_saved is None or best.train_accuracy > last_saved.train_accuracy + AUTOSAVE_MARGIN):
            repository.save(best, train, test, stats.generation)
            last_saved = best

    start_time = time.time()

    try:
        engine.run_evolution(progress_callback=on_generation)
    except KeyboardInterrupt:
        print("\nEvolution interrupted by user")

    elapsed = time.time() - start_time
    best = engine.get_best_individual()
    if best is None:
        print("No population was built")
        sys.exit(1)

    solved = engine.has_perfect_solution()
    print()
    print("SUCCESS: perfect solution found" if solved else "Reached the generation limit")
    print(f"Generations: {engine.generation}")
    print(f"Best fitness: {best.fitness:.2f}")
    print(f"Train accuracy: {best.train_accuracy:.1f}%  Test accuracy: {best.test_accuracy:.1f}%")
    print(f"Best program: {best.program}")
    print(f"Time elapsed: {elapsed:.1f}s")

    if args.save_bundle:
        meta = collect_run_metadata()
        meta["timestamp"] = time.strftime("%Y-%m-%d %H:%M:%S UTC", time.gmtime())

        bundle = {
            "metadata": meta,
            "version": __version__,
            "task": {
                "name": infer_task_name(train),
                "train": {"inputs": train.inputs, "targets": train.targets},
                "test": {"inputs": test.inputs, "targets": test.targets},
            },
            "config": {**ga_settings.to_dict(), "seed": args.seed, "max_steps": args.max_steps},
            "results": {
                "best_fitness": best.fitness,
                "train_accuracy": best.train_accuracy,
                "test_accuracy": best.test_accuracy,
                "perfect": solved,
                "final_generation": engine.generation,
                "elapsed_time": elapsed,
            },
            "best_program": best.program,
            "history": [s.to_dict() for s in engine.history],
        }

        Path(args.save_bundle).parent.mkdir(parents=True, exist_ok=True)
        with open(args.save_bundle, "w") as f:
            json.dump(bundle, f, indent=2)
        print(f"Bundle saved to: {args.save_bundle}")


def replay_main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for bfsynth-replay command."""
    parser = argparse.ArgumentParser(description="Replay a BFSynth bundle")
    parser.add_argument("--bundle", required=True, help="Bundle JSON file to replay")
    args = parser.parse_args(argv)

    try:
        with open(args.bundle, "r") as f:
            bundle = json.load(f)

        task = bundle["task"]
        train = DataSet(task["train"]["inputs"], task["train"]["targets"])
        test = DataSet(task["test"]["inputs"], task["test"]["targets"])
        program = bundle["best_program"]
        max_steps = bundle.get("config", {}).get("max_steps", get_config().interpreter.max_steps)
    except FileNotFoundError:
        print(f"Error: Bundle file not found: {args.bundle}")
        sys.exit(1)
    except json.JSONDecodeError:
        print(f"Error: Invalid JSON in bundle file: {args.bundle}")
        sys.exit(1)
    except (KeyError, TypeError) as e:
        print(f"Error: Bundle is missing field {e}")
        sys.exit(1)

    print("BFSynth Replay")
    print(f"Bundle: {args.bundle}")
    print(f"Version: {bundle.get('version', 'unknown')}")
    print(f"Task: {task.get('name', 'unknown')}")
    print(f"Program: {program}")
    print("-" * 40)

    individual = evaluate(program, train.to_cases(), test.to_cases(), max_steps)

    for label, cases, outputs, results in (
            ("train", train.to_cases(), individual.train_outputs, individual.train_results),
            ("test", test.to_cases(), individual.test_outputs, individual.test_results)):
        for case, output, ok in zip(cases, outputs, results):
            print(f"  [{label}] {case.input:3d} -> {list(output_bytes(output))} "
                  f"(expected {case.expected}) {'PASS' if ok else 'FAIL'}")

    print(f"\nTrain accuracy: {individual.train_accuracy:.1f}%")
    print(f"Test accuracy: {individual.test_accuracy:.1f}%")

    recorded = bundle.get("results", {}).get("train_accuracy")
    if recorded is not None and abs(recorded - individual.train_accuracy) > 1e-9:
        print(f"MISMATCH: bundle recorded train accuracy {recorded:.1f}%")
        sys.exit(1)


def library_main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for bfsynth-library command."""
    parser = argparse.ArgumentParser(description="Inspect a BFSynth genome library")
    parser.add_argument("--library", required=True, help="JSON genome library")
    sub = parser.add_subparsers(dest="command", required=True)
    list_parser = sub.add_parser("list", help="List stored genomes, best first")
    list_parser.add_argument("--limit", type=int, default=50)
    sub.add_parser("stats", help="Per-task counts and best accuracy")
    delete_parser = sub.add_parser("delete", help="Delete a stored genome")
    delete_parser.add_argument("genome_id")
    args = parser.parse_args(argv)

    repository = JsonGenomeRepository(args.library)

    try:
        if args.command == "list":
            for genome in repository.list_all(args.limit):
                print(f"{genome.id}  {genome.task_name:<16} train={genome.train_accuracy:5.1f}%  "
                      f"gen={genome.generation_found:<5d} {genome.program_code}")
        elif args.command == "stats":
            for stats in repository.task_stats():
                print(f"{stats.task_name:<16} count={stats.count:<4d} best={stats.best_accuracy:.1f}%")
        else:
            repository.delete(args.genome_id)
            print(f"Deleted {args.genome_id}")
    except GenomeNotFoundError as e:
        print(f"Error: {e}")
        sys.exit(1)
    except BFSynthError as e:
        print(f"Error: Library is corrupt: {e}")
        sys.exit(1)


def info_main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for bfsynth-info command."""
    parser = argparse.ArgumentParser(description="Show BFSynth system information")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    args = parser.parse_args(argv)

    meta = collect_run_metadata()

    if args.json:
        print(json.dumps(meta, indent=2))
    else:
        print(format_metadata_summary(meta))


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] in ("replay", "library", "info"):
        command = sys.argv.pop(1)
        {"replay": replay_main, "library": library_main, "info": info_main}[command]()
    else:
        evolve_main()
