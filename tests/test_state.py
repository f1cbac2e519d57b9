"""Tests for the phase controller."""

from dataclasses import replace

import pytest

from honeypot.config import StateConfig
from honeypot.state import Phase, StateController, TurnSignals, coerce_phase


@pytest.fixture
def controller():
    return StateController()


def signals(**kwargs):
    return TurnSignals(**kwargs)


# ── Entry and Coercion ──────────────────────────────────────────

class TestEntry:
    def test_initial_goes_to_greeting(self, controller):
        result = controller.transition(Phase.INITIAL, signals(max_confidence=0.99, has_direct_request=True))
        assert result.next_phase is Phase.GREETING
        assert not result.should_end

    @pytest.mark.parametrize("value", ["BOGUS", None, 42, ""])
    def test_unknown_phase_coerced(self, value):
        assert coerce_phase(value) is Phase.INITIAL

    def test_phase_names_accepted_as_strings(self, controller):
        assert coerce_phase("request") is Phase.REQUEST
        result = controller.transition("GREETING", {"turn_count": 3})
        assert result.next_phase is Phase.BUILDING_RAPPORT

    def test_missing_signals_use_defaults(self, controller):
        result = controller.transition(Phase.GREETING, {})
        assert result.next_phase is Phase.GREETING
        assert not result.should_end

    def test_none_signal_values_ignored(self):
        built = TurnSignals.from_mapping({"turn_count": None, "max_confidence": 0.4, "junk": 1})
        assert built.turn_count == 0
        assert built.max_confidence == 0.4


# ── Track Progression ───────────────────────────────────────────

class TestProgression:
    def test_one_step_per_turn(self, controller):
        strong = signals(max_confidence=0.9, has_financial_context=True, has_direct_request=True, turn_count=2)
        assert controller.track_phase(strong) is Phase.EXTRACTION
        assert controller.transition(Phase.GREETING, strong).next_phase is Phase.BUILDING_RAPPORT
        assert controller.transition(Phase.BUILDING_RAPPORT, strong).next_phase is Phase.FINANCIAL_CONTEXT
        assert controller.transition(Phase.FINANCIAL_CONTEXT, strong).next_phase is Phase.REQUEST
        assert controller.transition(Phase.REQUEST, strong).next_phase is Phase.EXTRACTION
        assert controller.transition(Phase.EXTRACTION, strong).next_phase is Phase.EXTRACTION

    def test_rapport_needs_turns(self, controller):
        assert controller.transition(Phase.GREETING, signals(turn_count=2)).next_phase is Phase.GREETING
        assert controller.transition(Phase.GREETING, signals(turn_count=3)).next_phase is Phase.BUILDING_RAPPORT

    def test_financial_needs_engagement(self, controller):
        calm = signals(max_confidence=0.9, turn_count=5)
        assert controller.transition(Phase.BUILDING_RAPPORT, calm).next_phase is Phase.BUILDING_RAPPORT
        money = replace(calm, has_financial_context=True, max_confidence=0.35)
        assert controller.transition(Phase.BUILDING_RAPPORT, money).next_phase is Phase.FINANCIAL_CONTEXT

    def test_request_threshold(self, controller):
        below = signals(max_confidence=0.59, has_financial_context=True, turn_count=5)
        assert controller.transition(Phase.FINANCIAL_CONTEXT, below).next_phase is Phase.FINANCIAL_CONTEXT
        at = replace(below, max_confidence=0.6)
        assert controller.transition(Phase.FINANCIAL_CONTEXT, at).next_phase is Phase.REQUEST

    def test_extraction_needs_direct_request(self, controller):
        no_ask = signals(max_confidence=0.95, has_financial_context=True, turn_count=5)
        assert controller.transition(Phase.REQUEST, no_ask).next_phase is Phase.REQUEST
        ask = replace(no_ask, has_direct_request=True)
        assert controller.transition(Phase.REQUEST, ask).next_phase is Phase.EXTRACTION

    def test_never_moves_backwards(self, controller):
        weak = signals(turn_count=5)
        assert controller.transition(Phase.REQUEST, weak).next_phase is Phase.REQUEST


# ── Suspicious Detour ───────────────────────────────────────────

class TestSuspicious:
    @pytest.mark.parametrize("phase", [Phase.GREETING, Phase.REQUEST, Phase.EXTRACTION, Phase.INITIAL])
    def test_enter_on_repeated_delays(self, controller, phase):
        result = controller.transition(phase, signals(consecutive_delays=3))
        assert result.next_phase is Phase.SUSPICIOUS

    def test_two_delays_tolerated(self, controller):
        result = controller.transition(Phase.GREETING, signals(consecutive_delays=2))
        assert result.next_phase is Phase.GREETING

    def test_stays_while_delaying(self, controller):
        result = controller.transition(Phase.SUSPICIOUS, signals(consecutive_delays=1))
        assert result.next_phase is Phase.SUSPICIOUS

    def test_exits_to_track(self, controller):
        result = controller.transition(
            Phase.SUSPICIOUS, signals(consecutive_delays=0, max_confidence=0.7, has_financial_context=True),
        )
        assert result.next_phase is Phase.REQUEST


# ── Closing ─────────────────────────────────────────────────────

class TestClosing:
    def test_turn_ceiling(self, controller):
        assert not controller.transition(Phase.REQUEST, signals(turn_count=20)).should_end
        result = controller.transition(Phase.REQUEST, signals(turn_count=21))
        assert result.next_phase is Phase.CLOSING
        assert result.should_end

    def test_external_termination(self, controller):
        result = controller.transition(Phase.GREETING, signals(external_termination=True))
        assert result.next_phase is Phase.CLOSING
        assert result.should_end

    def test_full_extraction_after_min_turns(self, controller):
        assert controller.transition(Phase.EXTRACTION, signals(extraction_progress=1.0, turn_count=4)).should_end
        early = controller.transition(Phase.EXTRACTION, signals(extraction_progress=1.0, turn_count=3))
        assert not early.should_end

    def test_closing_is_terminal(self, controller):
        result = controller.transition(Phase.CLOSING, signals())
        assert result.next_phase is Phase.CLOSING
        assert result.should_end

    def test_custom_ceiling(self):
        controller = StateController(replace(StateConfig(), max_turns=2))
        assert controller.transition(Phase.GREETING, signals(turn_count=3)).should_end


# ── Totality ────────────────────────────────────────────────────

class TestTotality:
    @pytest.mark.parametrize("phase", list(Phase))
    @pytest.mark.parametrize("confidence", [0.0, 0.4, 0.8])
    @pytest.mark.parametrize("delays", [0, 3])
    def test_always_returns_a_phase(self, controller, phase, confidence, delays):
        result = controller.transition(phase, signals(
            max_confidence=confidence, has_financial_context=True,
            has_direct_request=True, turn_count=5, consecutive_delays=delays,
        ))
        assert isinstance(result.next_phase, Phase)
        assert result.should_end == (result.next_phase is Phase.CLOSING)
