#!/usr/bin/env python3
"""
Main experiment runner for the IPD fitness harness
Runs the all-pairs baseline tournament or scores a generation of random networks against a fixed opponent
"""

import os
import sys
import argparse
import logging
from datetime import datetime

# Add parent directory to path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from ipd_fitness import (
    Tournament, ExperimentConfig, FeedForwardNetwork,
    create_baseline_agents, get_agent_by_name, evaluate_generation
)
from ipd_fitness.utils import (
    setup_logging, create_experiment_config, save_experiment_metadata, Timer
)


logger = logging.getLogger(__name__)


def run_round_robin(config: ExperimentConfig, experiment_dir: str):
    """Every baseline strategy against every other, reporting rates and cumulative score"""
    agents = create_baseline_agents(seed=config.seed)
    tournament = Tournament(
        agents,
        repetitions=config.repetitions,
        scored_rounds=config.scored_rounds,
        max_concurrent=config.max_concurrent,
        verbose=config.verbose,
    )

    with Timer("Round-robin tournament"):
        result = tournament.run_tournament()

    summary = result.get_summary_stats()
    for row in summary.itertuples(index=False):
        print()
        print(f"{row.agent} winRate {row.win_rate:.2f}")
        print(f"{row.agent} lossRate {row.loss_rate:.2f}")
        print(f"{row.agent} drawRate {row.draw_rate:.2f}")
        print(f"{row.agent} win+DrawRate {row.win_or_draw_rate:.2f}")

    print()
    for row in summary.itertuples(index=False):
        print(f"{row.agent} score {row.total_score}")

    if result.failures:
        print(f"\n⚠️  {len(result.failures)} matches failed, see log for details")

    result.save_to_csv(os.path.join(experiment_dir, "round_robin_summary.csv"))
    save_experiment_metadata(
        create_experiment_config("round_robin", [a.name for a in agents], config.to_dict()),
        os.path.join(experiment_dir, "config.json"),
    )
    return result


def run_fitness(config: ExperimentConfig, experiment_dir: str, population: int, hidden: int):
    """Score a generation of randomly initialised networks against the baseline"""
    baseline = get_agent_by_name(config.baseline, seed=config.seed)
    models = [
        FeedForwardNetwork.random(hidden=hidden, seed=None if config.seed is None else config.seed + i)
        for i in range(population)
    ]

    with Timer("Generation evaluation"):
        generation = evaluate_generation(
            models,
            baseline=baseline,
            repetitions=1,
            win_threshold=config.win_threshold,
            scored_rounds=config.scored_rounds,
            max_workers=config.max_concurrent,
            verbose=config.verbose,
        )

    print(f"\nBaseline: {baseline.name}")
    print(f"Mean fitness: {generation.mean_fitness:.2f}")
    print(f"Max fitness:  {generation.max_fitness:.2f}")
    print(f"Min fitness:  {generation.min_fitness:.2f}")
    if generation.solved:
        best = generation.best
        print(f"🏆 Solved by {best.candidate} with fitness {best.fitness:.2f} "
              f"({models[generation.best_index]!r})")
    else:
        print(f"No candidate scored above {config.win_threshold}")

    metadata = create_experiment_config("fitness", [baseline.name], config.to_dict())
    metadata['generation'] = {
        'population': population,
        'hidden': hidden,
        'solved': generation.solved,
        'best_index': generation.best_index,
        'mean_fitness': generation.mean_fitness,
        'max_fitness': generation.max_fitness,
        'min_fitness': generation.min_fitness,
        'fitness': generation.fitness_values,
    }
    save_experiment_metadata(metadata, os.path.join(experiment_dir, "config.json"))
    return generation


def build_config(args) -> ExperimentConfig:
    config = ExperimentConfig.from_env(args.env_file)
    overrides = {
        'repetitions': args.repetitions,
        'scored_rounds': args.rounds,
        'win_threshold': args.win_threshold,
        'baseline': args.baseline,
        'max_concurrent': args.max_concurrent,
        'seed': args.seed,
        'output_dir': args.output,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    if args.quiet:
        config.verbose = False
    config.validate()
    return config


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run IPD tournaments and fitness evaluations")
    parser.add_argument("--fitness", action="store_true",
                        help="Score a generation of random networks against the baseline instead of the round-robin")
    parser.add_argument("--repetitions", type=int,
                        help="Matches per ordered pairing in the round-robin (default: 1000)")
    parser.add_argument("--rounds", type=int,
                        help="Scored rounds per match (default: 10)")
    parser.add_argument("--baseline", type=str,
                        help="Fixed opponent for fitness scoring (default: RandomAgent)")
    parser.add_argument("--win-threshold", type=float,
                        help="Fitness strictly above this flags a winner (default: 16)")
    parser.add_argument("--population", type=int, default=50,
                        help="Number of candidate networks in fitness mode (default: 50)")
    parser.add_argument("--hidden", type=int, default=1,
                        help="Hidden units of the candidate networks, 0 for none (default: 1)")
    parser.add_argument("--max-concurrent", type=int,
                        help="Maximum number of concurrent pairings / evaluations (default: 8)")
    parser.add_argument("--seed", type=int,
                        help="Seed for randomized agents and networks")
    parser.add_argument("--output", type=str,
                        help="Output directory for results (default: results)")
    parser.add_argument("--env-file", type=str,
                        help="Path to a .env file with IPD_* settings")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Disable progress bars")
    parser.add_argument("--debug", action="store_true",
                        help="Verbose logging")

    args = parser.parse_args()

    try:
        config = build_config(args)
    except ValueError as e:
        parser.error(str(e))

    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    experiment_dir = os.path.join(config.output_dir, f"{'fitness' if args.fitness else 'round_robin'}_{timestamp}")
    os.makedirs(experiment_dir, exist_ok=True)
    setup_logging(logging.DEBUG if args.debug else logging.INFO,
                  log_file=os.path.join(experiment_dir, "experiment.log"))

    if args.fitness:
        run_fitness(config, experiment_dir, population=args.population, hidden=args.hidden)
    else:
        run_round_robin(config, experiment_dir)

    print(f"\n📊 Results saved to: {experiment_dir}")
