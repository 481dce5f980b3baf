"""
Repeated Prisoner's Dilemma game state machine
Holds scores, the round counter and the previous choices of both players
"""

from enum import Enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


# Scored rounds per match; the seeding round comes on top (11 rounds in total)
SCORED_ROUNDS = 10


class Choice(Enum):
    """A player's action for one round"""
    COOPERATE = 0
    DEFECT = 1

    @property
    def letter(self) -> str:
        return 'C' if self is Choice.COOPERATE else 'D'


PAYOFF_MATRIX: Dict[Tuple[Choice, Choice], Tuple[int, int]] = {
    (Choice.COOPERATE, Choice.COOPERATE): (1, 1),
    (Choice.DEFECT, Choice.DEFECT): (-1, -1),
    (Choice.COOPERATE, Choice.DEFECT): (-2, 3),
    (Choice.DEFECT, Choice.COOPERATE): (3, -2),
}


def payoff(choice_a: Optional[Choice], choice_b: Optional[Choice]) -> Tuple[int, int]:
    """Return (delta_a, delta_b) for one round; the sentinel pair scores nothing"""
    if choice_a is None and choice_b is None:
        return 0, 0
    return PAYOFF_MATRIX[(choice_a, choice_b)]


class InvalidChoiceError(ValueError):
    """A value outside {COOPERATE, DEFECT} was played"""


class GameOverError(RuntimeError):
    """play() was called on a finished game"""


@dataclass(frozen=True)
class GameState:
    """Read-only snapshot handed to agents.

    Agents always see the state from their own side: ``previous_choice_a`` is
    the viewer's own previous choice and ``previous_choice_b`` the opponent's.
    Both are None until the first scored round has been played.
    """
    previous_choice_a: Optional[Choice]
    previous_choice_b: Optional[Choice]
    round: int

    def __post_init__(self):
        if self.round < 0:
            raise ValueError(f"round must be >= 0, got {self.round}")

    @property
    def own_previous(self) -> Optional[Choice]:
        return self.previous_choice_a

    @property
    def opponent_previous(self) -> Optional[Choice]:
        return self.previous_choice_b

    def swapped(self) -> "GameState":
        """Same snapshot seen from the other player's side"""
        return GameState(
            previous_choice_a=self.previous_choice_b,
            previous_choice_b=self.previous_choice_a,
            round=self.round,
        )


class Game:
    """One repeated-game session between player A and player B"""

    def __init__(self, scored_rounds: int = SCORED_ROUNDS):
        if scored_rounds < 1:
            raise ValueError(f"scored_rounds must be >= 1, got {scored_rounds}")
        self.scored_rounds = scored_rounds
        self.score_a = 0
        self.score_b = 0
        self.round = 0
        self.previous_choice_a: Optional[Choice] = None
        self.previous_choice_b: Optional[Choice] = None

    @classmethod
    def create(cls, scored_rounds: int = SCORED_ROUNDS) -> "Game":
        return cls(scored_rounds=scored_rounds)

    def state(self) -> GameState:
        return GameState(
            previous_choice_a=self.previous_choice_a,
            previous_choice_b=self.previous_choice_b,
            round=self.round,
        )

    def is_over(self) -> bool:
        return self.round > self.scored_rounds

    def play(self, choice_a: Optional[Choice], choice_b: Optional[Choice]):
        """Score one round, remember the choices and advance the round counter.

        ``play(None, None)`` is the seeding round: it counts toward the round
        counter but never toward the scores. Validation happens before any
        field is touched, so a rejected call leaves the game unchanged.
        """
        if self.is_over():
            raise GameOverError(f"game already finished after round {self.round}")

        seeding = choice_a is None and choice_b is None
        if not seeding:
            for role, choice in (('A', choice_a), ('B', choice_b)):
                if not isinstance(choice, Choice):
                    raise InvalidChoiceError(f"player {role} played {choice!r}")

        delta_a, delta_b = payoff(choice_a, choice_b)
        self.score_a += delta_a
        self.score_b += delta_b

        # keep what happened last round so agents can react to it
        self.previous_choice_a = choice_a
        self.previous_choice_b = choice_b

        self.round += 1

    def __repr__(self):
        return (f"Game(round={self.round}, score_a={self.score_a}, "
                f"score_b={self.score_b})")
