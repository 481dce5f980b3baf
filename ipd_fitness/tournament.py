"""
Tournament engine for running IPD matches
Handles match execution, result aggregation and export
"""

import asyncio
import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple
from dataclasses import asdict, dataclass, field
from datetime import datetime
import pandas as pd
from tqdm import tqdm

from .agents import Agent, ModelEvaluationError
from .game import SCORED_ROUNDS, Choice, Game, InvalidChoiceError


logger = logging.getLogger(__name__)


class AgentContractError(InvalidChoiceError):
    """An agent returned something other than a Choice"""

    def __init__(self, agent_name: str, value):
        super().__init__(f"agent '{agent_name}' returned {value!r} instead of a Choice")
        self.agent_name = agent_name
        self.value = value


class Winner(Enum):
    A = "A"
    B = "B"
    DRAW = "Draw"


@dataclass(frozen=True)
class MatchOutcome:
    """Final result of one match between two agents"""
    agent_a: str
    agent_b: str
    score_a: int
    score_b: int
    winner: Winner
    rounds_played: int
    choices_a: Tuple[Choice, ...] = ()
    choices_b: Tuple[Choice, ...] = ()

    def to_dict(self) -> Dict:
        return {
            'agent_a': self.agent_a,
            'agent_b': self.agent_b,
            'moves': [(a.letter, b.letter) for a, b in zip(self.choices_a, self.choices_b)],
            'scores': (self.score_a, self.score_b),
            'winner': self.winner.value,
            'rounds': self.rounds_played,
        }


def decide_winner(score_a: int, score_b: int) -> Winner:
    if score_a > score_b:
        return Winner.A
    if score_a < score_b:
        return Winner.B
    return Winner.DRAW


def _ask(agent: Agent, state) -> Choice:
    choice = agent.decide(state)
    if not isinstance(choice, Choice):
        raise AgentContractError(agent.name, choice)
    return choice


def run_match(agent_a: Agent, agent_b: Agent, scored_rounds: int = SCORED_ROUNDS) -> MatchOutcome:
    """Play one complete match: a seeding round, then scored rounds until the game is over.

    Each agent sees the state from its own side, so player B gets the swapped
    snapshot. Both are asked before either choice is applied.
    Raises AgentContractError or ModelEvaluationError; neither is recovered here.
    """
    game = Game(scored_rounds=scored_rounds)

    # seeding round: primes the previous-choice fields without scoring
    game.play(None, None)

    choices_a = []
    choices_b = []
    while not game.is_over():
        state = game.state()
        choice_a = _ask(agent_a, state)
        choice_b = _ask(agent_b, state.swapped())
        game.play(choice_a, choice_b)
        choices_a.append(choice_a)
        choices_b.append(choice_b)

    return MatchOutcome(
        agent_a=agent_a.name,
        agent_b=agent_b.name,
        score_a=game.score_a,
        score_b=game.score_b,
        winner=decide_winner(game.score_a, game.score_b),
        rounds_played=len(choices_a),
        choices_a=tuple(choices_a),
        choices_b=tuple(choices_b),
    )


@dataclass
class AgentStats:
    """Win/loss/draw counts and cumulative score of one agent"""
    wins: int = 0
    losses: int = 0
    draws: int = 0
    total_score: int = 0
    games_played: int = 0
    failures: int = 0

    def record(self, outcome: MatchOutcome):
        """Count a finished match from player A's side"""
        if outcome.winner is Winner.A:
            self.wins += 1
        elif outcome.winner is Winner.B:
            self.losses += 1
        else:
            self.draws += 1
        self.total_score += outcome.score_a
        self.games_played += 1

    def merge(self, other: "AgentStats"):
        self.wins += other.wins
        self.losses += other.losses
        self.draws += other.draws
        self.total_score += other.total_score
        self.games_played += other.games_played
        self.failures += other.failures

    def _rate(self, count: int) -> float:
        return (count / self.games_played * 100) if self.games_played else 0.0

    @property
    def win_rate(self) -> float:
        return self._rate(self.wins)

    @property
    def loss_rate(self) -> float:
        return self._rate(self.losses)

    @property
    def draw_rate(self) -> float:
        return self._rate(self.draws)

    @property
    def win_or_draw_rate(self) -> float:
        return self._rate(self.wins + self.draws)

    def to_dict(self) -> Dict:
        return {
            'wins': self.wins,
            'losses': self.losses,
            'draws': self.draws,
            'games_played': self.games_played,
            'failures': self.failures,
            'win_rate': round(self.win_rate, 2),
            'loss_rate': round(self.loss_rate, 2),
            'draw_rate': round(self.draw_rate, 2),
            'win_or_draw_rate': round(self.win_or_draw_rate, 2),
            'total_score': self.total_score,
        }


AggregateStats = Dict[str, AgentStats]


def merge_stats(partials: List[AggregateStats], names: Optional[List[str]] = None) -> AggregateStats:
    """Reduce per-worker accumulators into one AggregateStats (single owner, no locking)"""
    merged: AggregateStats = {name: AgentStats() for name in (names or [])}
    for partial in partials:
        for name, stats in partial.items():
            merged.setdefault(name, AgentStats()).merge(stats)
    return merged


@dataclass(frozen=True)
class MatchFailure:
    """A match that ended in a contract violation or model error"""
    agent_a: str
    agent_b: str
    repetition: int
    error: str


@dataclass
class TournamentResult:
    """Complete tournament results"""
    agent_stats: AggregateStats
    failures: List[MatchFailure]
    repetitions: int
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def get_summary_stats(self) -> pd.DataFrame:
        """Summary statistics for all agents, best win rate first"""
        rows = [{'agent': name, **stats.to_dict()} for name, stats in self.agent_stats.items()]
        columns = ['agent', 'wins', 'losses', 'draws', 'games_played', 'failures',
                   'win_rate', 'loss_rate', 'draw_rate', 'win_or_draw_rate', 'total_score']
        df = pd.DataFrame(rows, columns=columns)
        return df.sort_values(['win_rate', 'total_score'], ascending=False).reset_index(drop=True)

    def save_to_csv(self, filepath: str):
        df = self.get_summary_stats()
        df.insert(0, 'timestamp', self.timestamp)
        df.to_csv(filepath, index=False)

    def to_dict(self) -> Dict:
        return {
            'timestamp': self.timestamp,
            'repetitions': self.repetitions,
            'agent_stats': {name: stats.to_dict() for name, stats in self.agent_stats.items()},
            'failures': [asdict(f) for f in self.failures],
        }


class Tournament:
    """All-pairs tournament: every agent plays every agent, itself included, as player A"""

    def __init__(self, agents: List[Agent], repetitions: int = 1000,
                 scored_rounds: int = SCORED_ROUNDS, max_concurrent: int = 8,
                 verbose: bool = True):
        names = [agent.name for agent in agents]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Agent names must be unique, duplicated: {', '.join(duplicates)}")
        if repetitions < 1:
            raise ValueError(f"repetitions must be >= 1, got {repetitions}")
        self.agents = agents
        self.repetitions = repetitions
        self.scored_rounds = scored_rounds
        self.max_concurrent = max_concurrent
        self.verbose = verbose

    def pairings(self) -> List[Tuple[Agent, Agent]]:
        return [(agent_a, agent_b) for agent_a in self.agents for agent_b in self.agents]

    def run_match(self, agent_a: Agent, agent_b: Agent) -> MatchOutcome:
        return run_match(agent_a, agent_b, scored_rounds=self.scored_rounds)

    def _play_pairing(self, index: int, agent_a: Agent, agent_b: Agent) -> Tuple[AggregateStats, List[MatchFailure]]:
        """Run every repetition of one pairing into a local accumulator.

        Both agents are spawned into copies owned by this pairing, so concurrent
        pairings never draw from the same RNG and seeded runs repeat exactly.
        """
        agent_a = agent_a.spawn(2 * index)
        agent_b = agent_b.spawn(2 * index + 1)
        stats = AgentStats()
        failures = []
        for repetition in range(self.repetitions):
            try:
                outcome = self.run_match(agent_a, agent_b)
            except (InvalidChoiceError, ModelEvaluationError) as e:
                logger.warning("Match %s vs %s (repetition %d) failed: %s",
                               agent_a.name, agent_b.name, repetition, e)
                stats.failures += 1
                failures.append(MatchFailure(agent_a.name, agent_b.name, repetition, str(e)))
                continue
            stats.record(outcome)
        return {agent_a.name: stats}, failures

    def run_tournament(self) -> TournamentResult:
        """Run the all-pairs tournament, concurrently when allowed"""
        if self.max_concurrent <= 1:
            return self._run_tournament_sync()
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.run_tournament_async())
        # already inside an event loop, which cannot be blocked on
        return self._run_tournament_sync()

    def _run_tournament_sync(self) -> TournamentResult:
        """Sequential tournament runner"""
        pairings = self.pairings()
        partials = []
        failures = []

        pbar = tqdm(total=len(pairings), desc="Running pairings", disable=not self.verbose)
        for index, (agent_a, agent_b) in enumerate(pairings):
            stats, pairing_failures = self._play_pairing(index, agent_a, agent_b)
            partials.append(stats)
            failures.extend(pairing_failures)
            pbar.update(1)
        pbar.close()

        return self._calculate_tournament_result(partials, failures)

    async def run_tournament_async(self, max_concurrent: Optional[int] = None) -> TournamentResult:
        """Run all pairings concurrently, each on a worker thread with its own accumulator"""
        if max_concurrent is None:
            max_concurrent = self.max_concurrent
        if max_concurrent is None or max_concurrent <= 0:
            max_concurrent = 8

        pairings = self.pairings()
        pbar = tqdm(total=len(pairings), desc="Running pairings concurrently", disable=not self.verbose)
        semaphore = asyncio.Semaphore(max_concurrent)
        loop = asyncio.get_running_loop()

        logger.info("Running %d pairings x %d repetitions with max %d concurrent",
                    len(pairings), self.repetitions, max_concurrent)

        async def run_single_pairing(index, agent_a, agent_b):
            async with semaphore:
                result = await loop.run_in_executor(None, self._play_pairing, index, agent_a, agent_b)
                pbar.update(1)
                return result

        results = await asyncio.gather(*(run_single_pairing(i, a, b) for i, (a, b) in enumerate(pairings)))
        pbar.close()

        partials = [stats for stats, _ in results]
        failures = [failure for _, pairing_failures in results for failure in pairing_failures]
        return self._calculate_tournament_result(partials, failures)

    def _calculate_tournament_result(self, partials: List[AggregateStats],
                                     failures: List[MatchFailure]) -> TournamentResult:
        agent_stats = merge_stats(partials, names=[agent.name for agent in self.agents])
        if failures:
            logger.warning("%d of %d matches failed", len(failures),
                           len(self.agents) ** 2 * self.repetitions)
        return TournamentResult(
            agent_stats=agent_stats,
            failures=failures,
            repetitions=self.repetitions,
        )
