"""Shared fixtures: seeded randomness, a fresh store and a pipeline whose reports are recorded."""

import random

import pytest

from honeypot.agent import StrategyEngine
from honeypot.config import EngineConfig
from honeypot.detector import ScamClassifier
from honeypot.extractor import IntelligenceExtractor
from honeypot.memory import InMemorySessionStore, Session
from honeypot.pipeline import HoneypotPipeline


class RecordingReporter:
    """Stands in for the HTTP reporter; keeps every dispatched payload."""

    def __init__(self):
        self.reports = []

    def dispatch(self, session_id, payload):
        self.reports.append((session_id, payload))


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def classifier(config):
    return ScamClassifier(config.classifier)


@pytest.fixture
def extractor(config):
    return IntelligenceExtractor(config.extractor)


@pytest.fixture
def engine(config, rng):
    return StrategyEngine(config.strategy, rng)


@pytest.fixture
def session(engine):
    s = Session(session_id="test-session-0001")
    s.persona = engine.new_persona_state()
    return s


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def pipeline(store, config, reporter, rng):
    return HoneypotPipeline(store, config=config, reporter=reporter, rng=rng)
