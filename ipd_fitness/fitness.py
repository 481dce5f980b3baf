"""
Fitness evaluation against a fixed baseline opponent
Scores candidate decision models the way an external evolutionary driver consumes them
"""

import math
import logging
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from tqdm import tqdm

from .agents import Agent, DecisionModel, ExternalModelAgent, ModelEvaluationError, RandomAgent
from .game import SCORED_ROUNDS, InvalidChoiceError
from .tournament import MatchOutcome, run_match


logger = logging.getLogger(__name__)


# A candidate is flagged as a winner when its fitness is strictly above this
DEFAULT_WIN_THRESHOLD = 16.0


@dataclass
class FitnessResult:
    """Fitness of one candidate against the baseline"""
    candidate: str
    fitness: float
    is_winner: bool
    outcomes: List[MatchOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class GenerationResult:
    """Fitness of a whole population plus the bookkeeping the optimizer reads back"""
    results: List[FitnessResult]
    best_index: Optional[int]
    solved: bool
    mean_fitness: float
    max_fitness: float
    min_fitness: float

    @property
    def best(self) -> Optional[FitnessResult]:
        return self.results[self.best_index] if self.best_index is not None else None

    @property
    def fitness_values(self) -> List[float]:
        return [r.fitness for r in self.results]


def evaluate_fitness(candidate: Agent, baseline: Agent, repetitions: int = 1,
                     win_threshold: float = DEFAULT_WIN_THRESHOLD,
                     scored_rounds: int = SCORED_ROUNDS) -> FitnessResult:
    """Play the candidate (as player A) against the baseline and report its score as fitness.

    A single repetition scores one representative match; more repetitions
    report the mean final score. Match failures propagate to the caller.
    """
    if repetitions < 1:
        raise ValueError(f"repetitions must be >= 1, got {repetitions}")

    outcomes = [run_match(candidate, baseline, scored_rounds=scored_rounds)
                for _ in range(repetitions)]
    fitness = float(np.mean([o.score_a for o in outcomes]))

    return FitnessResult(
        candidate=candidate.name,
        fitness=fitness,
        is_winner=fitness > win_threshold,
        outcomes=outcomes,
    )


def evaluate_model(model: DecisionModel, baseline: Agent, name: Optional[str] = None,
                   **kwargs) -> FitnessResult:
    """Wrap a decision function as an ExternalModelAgent and score it"""
    candidate = ExternalModelAgent(name or "Candidate", model)
    return evaluate_fitness(candidate, baseline, **kwargs)


def _evaluate_safely(index: int, model: DecisionModel, baseline: Agent, kwargs: dict) -> FitnessResult:
    name = f"Candidate_{index:03d}"
    # each candidate plays its own copy of the baseline
    baseline = baseline.spawn(index)
    try:
        return evaluate_model(model, baseline, name=name, **kwargs)
    except (InvalidChoiceError, ModelEvaluationError) as e:
        logger.warning("Evaluation of %s failed: %s", name, e)
        return FitnessResult(candidate=name, fitness=math.nan, is_winner=False, error=str(e))


def evaluate_generation(models: Sequence[DecisionModel], baseline: Optional[Agent] = None,
                        repetitions: int = 1, win_threshold: float = DEFAULT_WIN_THRESHOLD,
                        scored_rounds: int = SCORED_ROUNDS, max_workers: Optional[int] = None,
                        verbose: bool = False) -> GenerationResult:
    """Score every candidate model of one generation against the baseline.

    A candidate whose match fails is kept with fitness NaN and an error message
    instead of aborting the generation. ``best_index`` points at the fittest
    winning candidate; ``solved`` is set when any candidate is a winner.
    """
    if baseline is None:
        baseline = RandomAgent("RandomAgent")
    kwargs = {'repetitions': repetitions, 'win_threshold': win_threshold,
              'scored_rounds': scored_rounds}

    pbar = tqdm(total=len(models), desc="Evaluating generation", disable=not verbose)
    if max_workers is not None and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(_evaluate_safely, i, model, baseline, kwargs)
                       for i, model in enumerate(models)]
            results = []
            for future in futures:
                results.append(future.result())
                pbar.update(1)
    else:
        results = []
        for i, model in enumerate(models):
            results.append(_evaluate_safely(i, model, baseline, kwargs))
            pbar.update(1)
    pbar.close()

    return _summarize_generation(results)


def _summarize_generation(results: List[FitnessResult]) -> GenerationResult:
    best_index = None
    for i, result in enumerate(results):
        if result.is_winner and (best_index is None or result.fitness > results[best_index].fitness):
            best_index = i

    scores = np.array([r.fitness for r in results if not r.failed], dtype=float)
    if scores.size:
        mean_fitness, max_fitness, min_fitness = float(scores.mean()), float(scores.max()), float(scores.min())
    else:
        mean_fitness = max_fitness = min_fitness = math.nan

    failed = sum(1 for r in results if r.failed)
    logger.info("Generation evaluated: %d candidates, %d failed, mean fitness %.2f, max %.2f",
                len(results), failed, mean_fitness, max_fitness)

    return GenerationResult(
        results=results,
        best_index=best_index,
        solved=best_index is not None,
        mean_fitness=mean_fitness,
        max_fitness=max_fitness,
        min_fitness=min_fitness,
    )
