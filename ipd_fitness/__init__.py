"""
IPD Fitness: repeated Prisoner's Dilemma games, baseline strategies and a
fitness harness for externally evolved decision models
"""

from .game import (
    Choice, GameState, Game, PAYOFF_MATRIX, SCORED_ROUNDS, payoff,
    InvalidChoiceError, GameOverError
)

from .agents import (
    Agent,

    # Fixed and randomized strategies
    AlwaysCooperate, AlwaysDefect, RandomAgent, RandomMostlyCooperate, RandomOftenDefect,

    # Reactive strategies
    TitForTat, TitForTatReversed,

    # External models
    ExternalModelAgent, ModelEvaluationError,

    BASELINE_AGENTS, get_agent_by_name, create_baseline_agents
)

from .networks import FeedForwardNetwork
from .tournament import (
    Tournament, TournamentResult, MatchOutcome, MatchFailure, Winner,
    AgentStats, AgentContractError, run_match, merge_stats
)
from .fitness import (
    FitnessResult, GenerationResult, DEFAULT_WIN_THRESHOLD,
    evaluate_fitness, evaluate_model, evaluate_generation
)
from .config import ExperimentConfig
from .utils import load_env_vars, setup_logging, Timer

__version__ = "1.0.0"
__all__ = [
    # Game
    "Choice", "GameState", "Game", "PAYOFF_MATRIX", "SCORED_ROUNDS", "payoff",
    "InvalidChoiceError", "GameOverError",

    # Agents
    "Agent", "AlwaysCooperate", "AlwaysDefect", "RandomAgent", "RandomMostlyCooperate",
    "RandomOftenDefect", "TitForTat", "TitForTatReversed",
    "ExternalModelAgent", "ModelEvaluationError", "FeedForwardNetwork",
    "BASELINE_AGENTS", "get_agent_by_name", "create_baseline_agents",

    # Tournament
    "Tournament", "TournamentResult", "MatchOutcome", "MatchFailure", "Winner",
    "AgentStats", "AgentContractError", "run_match", "merge_stats",

    # Fitness
    "FitnessResult", "GenerationResult", "DEFAULT_WIN_THRESHOLD",
    "evaluate_fitness", "evaluate_model", "evaluate_generation",

    # Utils
    "ExperimentConfig", "load_env_vars", "setup_logging", "Timer"
]
