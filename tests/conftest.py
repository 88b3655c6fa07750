"""Shared fixtures: manual clock, seeded rng and fresh engine instances."""

import random

import pytest

from studyloop.clock import ManualClock
from studyloop.session import SessionMachine
from studyloop.store import SrsStore
from tests.factories import START


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def store(clock: ManualClock) -> SrsStore:
    return SrsStore(clock=clock)


@pytest.fixture
def machine(clock: ManualClock, rng: random.Random) -> SessionMachine:
    return SessionMachine(clock=clock, rng=rng)
