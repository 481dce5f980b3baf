import pytest
import sys
import os

import pandas as pd

# Add the parent directory to the path so we can import ipd_fitness
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ipd_fitness.agents import (
    Agent, AlwaysCooperate, AlwaysDefect, ExternalModelAgent, TitForTat, TitForTatReversed,
    create_baseline_agents
)
from ipd_fitness.game import Choice
from ipd_fitness.tournament import (
    AgentContractError, AgentStats, MatchOutcome, Tournament, Winner, merge_stats, run_match
)

C = Choice.COOPERATE
D = Choice.DEFECT


class LetterAgent(Agent):
    """Breaks the contract by answering with a letter"""
    def decide(self, state):
        return 'D'


class RecordingAgent(Agent):
    """Remembers every state it was shown"""
    def __init__(self, name, choice):
        super().__init__(name)
        self.choice = choice
        self.states = []

    def decide(self, state):
        self.states.append(state)
        return self.choice


class TestRunMatch:
    """Known matchups over 10 scored rounds"""

    @pytest.mark.parametrize("agent_a, agent_b, score_a, score_b, winner", [
        (AlwaysCooperate(), AlwaysCooperate(), 10, 10, Winner.DRAW),
        (AlwaysDefect(), AlwaysDefect(), -10, -10, Winner.DRAW),
        (AlwaysCooperate(), AlwaysDefect(), -20, 30, Winner.B),
        (TitForTat(), AlwaysDefect(), -11, -6, Winner.B),
        (AlwaysDefect(), TitForTat(), -6, -11, Winner.A),
        (AlwaysCooperate(), TitForTatReversed(), -17, 28, Winner.B),
        (TitForTat(), TitForTatReversed(), 1, 6, Winner.B),
    ])
    def test_known_scores(self, agent_a, agent_b, score_a, score_b, winner):
        outcome = run_match(agent_a, agent_b)
        assert (outcome.score_a, outcome.score_b) == (score_a, score_b)
        assert outcome.winner is winner
        assert outcome.rounds_played == 10

    def test_tit_for_tat_moves_against_defector(self):
        outcome = run_match(TitForTat("TFT"), AlwaysDefect("AllD"))
        assert outcome.choices_a == (C,) + (D,) * 9
        assert outcome.choices_b == (D,) * 10

    def test_each_agent_sees_its_own_side(self):
        a = RecordingAgent("A", C)
        b = RecordingAgent("B", D)
        run_match(a, b)

        assert len(a.states) == len(b.states) == 10
        assert a.states[0].previous_choice_a is None
        assert b.states[0].previous_choice_b is None
        for state in a.states[1:]:
            assert (state.own_previous, state.opponent_previous) == (C, D)
        for state in b.states[1:]:
            assert (state.own_previous, state.opponent_previous) == (D, C)
        assert [s.round for s in a.states] == list(range(1, 11))

    def test_deterministic_replay(self):
        first = run_match(TitForTat("TFT"), TitForTatReversed("TFTR"))
        second = run_match(TitForTat("TFT"), TitForTatReversed("TFTR"))
        assert first == second

    def test_contract_violation_is_fatal(self):
        with pytest.raises(AgentContractError) as excinfo:
            run_match(AlwaysCooperate(), LetterAgent("Letters"))
        assert excinfo.value.agent_name == "Letters"
        assert excinfo.value.value == 'D'

    def test_custom_horizon(self):
        outcome = run_match(AlwaysCooperate(), AlwaysDefect(), scored_rounds=3)
        assert outcome.rounds_played == 3
        assert (outcome.score_a, outcome.score_b) == (-6, 9)

    def test_to_dict(self):
        outcome = run_match(AlwaysCooperate("AllC"), AlwaysDefect("AllD"), scored_rounds=2)
        assert outcome.to_dict() == {
            'agent_a': "AllC",
            'agent_b': "AllD",
            'moves': [('C', 'D'), ('C', 'D')],
            'scores': (-4, 6),
            'winner': "B",
            'rounds': 2,
        }


class TestAgentStats:
    """Accumulation and rates"""

    def _outcome(self, score_a, score_b, winner):
        return MatchOutcome("A", "B", score_a, score_b, winner, 10)

    def test_record_and_rates(self):
        stats = AgentStats()
        stats.record(self._outcome(3, 1, Winner.A))
        stats.record(self._outcome(1, 3, Winner.B))
        stats.record(self._outcome(2, 2, Winner.DRAW))
        stats.record(self._outcome(5, 0, Winner.A))

        assert (stats.wins, stats.losses, stats.draws, stats.games_played) == (2, 1, 1, 4)
        assert stats.total_score == 11
        assert stats.win_rate == 50.0
        assert stats.loss_rate == 25.0
        assert stats.draw_rate == 25.0
        assert stats.win_or_draw_rate == 75.0

    def test_rates_without_games(self):
        stats = AgentStats()
        assert stats.win_rate == stats.loss_rate == stats.draw_rate == 0.0

    def test_merge_stats_sums_partials(self):
        first = {"X": AgentStats(wins=1, games_played=1, total_score=5)}
        second = {"X": AgentStats(losses=2, games_played=2, total_score=-3, failures=1),
                  "Y": AgentStats(draws=1, games_played=1)}
        merged = merge_stats([first, second], names=["X", "Y", "Z"])

        assert merged["X"] == AgentStats(wins=1, losses=2, total_score=2, games_played=3, failures=1)
        assert merged["Y"].draws == 1
        assert merged["Z"] == AgentStats()


class TestTournament:
    """All-pairs aggregation"""

    def _agents(self):
        return [AlwaysCooperate("AllC"), AlwaysDefect("AllD"), TitForTat("TFT")]

    def _check_expected(self, result):
        stats = result.agent_stats
        assert stats["AllC"] == AgentStats(wins=0, losses=3, draws=6, total_score=0, games_played=9)
        assert stats["AllD"] == AgentStats(wins=6, losses=0, draws=3, total_score=42, games_played=9)
        assert stats["TFT"] == AgentStats(wins=0, losses=3, draws=6, total_score=27, games_played=9)
        assert result.failures == []

    def test_sequential_all_pairs(self):
        tournament = Tournament(self._agents(), repetitions=3, max_concurrent=1, verbose=False)
        self._check_expected(tournament.run_tournament())

    def test_concurrent_matches_sequential(self):
        tournament = Tournament(self._agents(), repetitions=3, max_concurrent=4, verbose=False)
        self._check_expected(tournament.run_tournament())

    def test_rate_invariants_with_random_agents(self):
        tournament = Tournament(create_baseline_agents(seed=3), repetitions=20,
                                max_concurrent=4, verbose=False)
        result = tournament.run_tournament()

        for name, stats in result.agent_stats.items():
            assert stats.wins + stats.losses + stats.draws == stats.games_played == 7 * 20
            for rate in (stats.win_rate, stats.loss_rate, stats.draw_rate):
                assert 0.0 <= rate <= 100.0
            assert stats.win_rate + stats.loss_rate + stats.draw_rate == pytest.approx(100.0)

    def test_seeded_run_independent_of_concurrency(self):
        def run(max_concurrent):
            tournament = Tournament(create_baseline_agents(seed=5), repetitions=200,
                                    max_concurrent=max_concurrent, verbose=False)
            return tournament.run_tournament()

        sequential = run(1)
        concurrent = run(4)
        assert concurrent.agent_stats == sequential.agent_stats
        # and a second concurrent run draws the same games again
        assert run(4).agent_stats == sequential.agent_stats

    @pytest.mark.parametrize("max_concurrent", [1, 4])
    def test_failed_matches_are_recorded_not_raised(self, max_concurrent):
        def broken(inputs):
            raise ValueError("bad weights")

        agents = [AlwaysCooperate("AllC"), LetterAgent("Letters"), ExternalModelAgent("Net", broken)]
        tournament = Tournament(agents, repetitions=2, max_concurrent=max_concurrent, verbose=False)
        result = tournament.run_tournament()

        # every match involving a broken agent fails; AllC only completes its self-play
        assert result.agent_stats["AllC"].games_played == 2
        assert result.agent_stats["AllC"].failures == 4
        assert result.agent_stats["Letters"].games_played == 0
        assert result.agent_stats["Letters"].failures == 6
        assert result.agent_stats["Net"].failures == 6
        assert len(result.failures) == 16
        assert {f.agent_a for f in result.failures} == {"AllC", "Letters", "Net"}

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            Tournament([AlwaysCooperate("X"), AlwaysDefect("X")])

    def test_summary_and_csv(self, tmp_path):
        tournament = Tournament(self._agents(), repetitions=2, max_concurrent=1, verbose=False)
        result = tournament.run_tournament()

        summary = result.get_summary_stats()
        assert list(summary['agent']) == ["AllD", "TFT", "AllC"]
        assert summary.loc[0, 'win_rate'] == pytest.approx(100 * 4 / 6, abs=0.01)

        path = tmp_path / "summary.csv"
        result.save_to_csv(str(path))
        loaded = pd.read_csv(path)
        assert len(loaded) == 3
        assert 'timestamp' in loaded.columns

        exported = result.to_dict()
        assert exported['repetitions'] == 2
        assert exported['agent_stats']['AllD']['wins'] == 4

    def test_run_async_directly(self):
        import asyncio

        tournament = Tournament(self._agents(), repetitions=3, verbose=False)
        result = asyncio.run(tournament.run_tournament_async(max_concurrent=2))
        self._check_expected(result)
