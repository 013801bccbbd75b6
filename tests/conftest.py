"""
Pytest configuration and fixtures

The engine is pure computation: no database, no network. Fixtures only
supply deterministic inputs and seeded random sources.
"""
import os
import random
import sys

import pytest

# Add the project root so `core` and `analytics` import without installation
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from analytics.trend_analyzer import TrendAnalyzer
from fixtures.series_fixtures import make_responder_dataset


@pytest.fixture
def seeded_random():
    """Fresh generator with a fixed seed for reproducible models."""
    return random.Random(42)


@pytest.fixture
def trend_analyzer():
    return TrendAnalyzer()


@pytest.fixture
def responder_dataset():
    return make_responder_dataset()
