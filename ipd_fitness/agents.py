"""
Agent implementations for the repeated Prisoner's Dilemma
Fixed-rule, randomized and reactive strategies plus an adapter for external decision models
"""

import copy
import random
import logging
import numpy as np
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Sequence, Type

from .game import Choice, GameState


logger = logging.getLogger(__name__)


class Agent(ABC):
    """Base class for all IPD agents"""

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__

    @abstractmethod
    def decide(self, state: GameState) -> Choice:
        """Return the choice for the coming round.

        ``state.previous_choice_a`` is this agent's own previous choice,
        ``state.previous_choice_b`` the opponent's.
        """
        pass

    def spawn(self, stream: int) -> "Agent":
        """Independent copy for one worker; ``stream`` tells concurrent copies apart"""
        return copy.copy(self)

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r})"


# Fixed strategies
class AlwaysCooperate(Agent):
    """Always cooperates"""
    def decide(self, state: GameState) -> Choice:
        return Choice.COOPERATE


class AlwaysDefect(Agent):
    """Always defects"""
    def decide(self, state: GameState) -> Choice:
        return Choice.DEFECT


# Randomized strategies
class RandomizedAgent(Agent):
    """Defects with a fixed probability, independently every round"""
    defect_probability = 0.5

    def __init__(self, name: Optional[str] = None, defect_probability: Optional[float] = None,
                 seed: Optional[int] = None):
        super().__init__(name)
        if defect_probability is not None:
            self.defect_probability = defect_probability
        if not 0.0 <= self.defect_probability <= 1.0:
            raise ValueError(f"defect_probability must be in [0, 1], got {self.defect_probability}")
        # module-level RNG unless a seed asks for a reproducible private one
        self.seed = seed
        self.rng = random.Random(seed) if seed is not None else random

    def spawn(self, stream: int) -> "RandomizedAgent":
        """Copy with its own RNG, seeded from (seed, stream) so workers never share draws"""
        spawned = copy.copy(self)
        if self.seed is not None:
            spawned.rng = random.Random(f"{self.seed}:{stream}")
        return spawned

    def decide(self, state: GameState) -> Choice:
        return Choice.DEFECT if self.rng.random() < self.defect_probability else Choice.COOPERATE


class RandomAgent(RandomizedAgent):
    """Cooperates or defects with equal probability"""
    defect_probability = 0.5


class RandomMostlyCooperate(RandomizedAgent):
    """Defects one time in ten"""
    defect_probability = 1 / 10


class RandomOftenDefect(RandomizedAgent):
    """Defects one time in three"""
    defect_probability = 1 / 3


# Reactive strategies
class TitForTat(Agent):
    """Cooperates first, then mirrors the opponent's last choice"""
    def decide(self, state: GameState) -> Choice:
        if state.opponent_previous is Choice.DEFECT:
            return Choice.DEFECT
        return Choice.COOPERATE


class TitForTatReversed(Agent):
    """Defects after the opponent cooperated, cooperates otherwise"""
    def decide(self, state: GameState) -> Choice:
        if state.opponent_previous is Choice.COOPERATE:
            return Choice.DEFECT
        return Choice.COOPERATE


# External models
class ModelEvaluationError(RuntimeError):
    """The external decision model failed or returned malformed output"""


# Encoding of previous choices fed to external models
CHOICE_INPUTS = {
    Choice.COOPERATE: 0.0,
    Choice.DEFECT: 1.0,
    None: -1.0,
}

DEFECT_THRESHOLD = 0.5

# plain callables and objects exposing decide(inputs) are both accepted
DecisionModel = Callable[[Sequence[float]], Sequence[float]]


class ExternalModelAgent(Agent):
    """Adapter around an externally supplied decision function (e.g. an evolved network).

    The model receives ``[own_previous, opponent_previous]`` encoded as floats
    (0 = cooperate, 1 = defect, -1 = nothing played yet) and must return at
    least one number; the first output above 0.5 means defect.
    """

    def __init__(self, name: Optional[str], model: DecisionModel):
        super().__init__(name)
        if callable(getattr(model, 'decide', None)):
            self._decide = model.decide
        elif callable(model):
            self._decide = model
        else:
            raise TypeError(f"model must be callable or provide decide(), got {type(model).__name__}")
        self.model = model

    @staticmethod
    def encode_state(state: GameState) -> List[float]:
        return [CHOICE_INPUTS[state.own_previous], CHOICE_INPUTS[state.opponent_previous]]

    def decide(self, state: GameState) -> Choice:
        inputs = self.encode_state(state)
        try:
            raw = self._decide(inputs)
        except Exception as e:
            raise ModelEvaluationError(f"{self.name}: model raised {e!r}") from e

        try:
            values = np.asarray(raw)
        except (TypeError, ValueError) as e:
            raise ModelEvaluationError(f"{self.name}: malformed model output {raw!r}") from e
        # only integer and floating outputs are accepted, never strings, bools or objects
        if values.dtype.kind not in 'iuf':
            raise ModelEvaluationError(f"{self.name}: non-numeric model output {raw!r}")
        outputs = values.astype(float).ravel()
        if outputs.size == 0:
            raise ModelEvaluationError(f"{self.name}: model returned no outputs")
        if np.isnan(outputs[0]):
            raise ModelEvaluationError(f"{self.name}: model returned NaN")

        return Choice.DEFECT if outputs[0] > DEFECT_THRESHOLD else Choice.COOPERATE


# Registry of the fixed and randomized strategies
BASELINE_AGENTS: Dict[str, Type[Agent]] = {
    "RandomAgent": RandomAgent,
    "TitForTat": TitForTat,
    "AlwaysDefect": AlwaysDefect,
    "AlwaysCooperate": AlwaysCooperate,
    "RandomMostlyCooperate": RandomMostlyCooperate,
    "TitForTatReversed": TitForTatReversed,
    "RandomOftenDefect": RandomOftenDefect,
}


def get_agent_by_name(name: str, seed: Optional[int] = None) -> Agent:
    """Instantiate a baseline agent from its registry name"""
    try:
        agent_cls = BASELINE_AGENTS[name]
    except KeyError:
        raise ValueError(f"Unknown agent '{name}'. Available: {', '.join(sorted(BASELINE_AGENTS))}") from None
    if issubclass(agent_cls, RandomizedAgent):
        return agent_cls(name, seed=seed)
    return agent_cls(name)


def create_baseline_agents(seed: Optional[int] = None) -> List[Agent]:
    """One instance of every baseline strategy; randomized ones get derived seeds"""
    agents = []
    for i, name in enumerate(BASELINE_AGENTS):
        agent_seed = seed * 1000 + i if seed is not None else None
        agents.append(get_agent_by_name(name, seed=agent_seed))
    logger.debug("Created %d baseline agents", len(agents))
    return agents
