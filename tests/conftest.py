import hashlib
import time

import numpy as np
import pytest

from trustvault.core.registry import InMemoryRegistry
from trustvault.core.storage import InMemoryStorage, VectorStore
from trustvault.services import embedding

DIMENSION = 384


class FakeEncoder:
    """Deterministic bag-of-words embedding: identical texts embed identically."""

    def __init__(self, dimension):
        self.dimension = dimension

    def encode(self, text):
        vec = np.zeros(self.dimension)
        for token in text.lower().split():
            idx = int(hashlib.sha256(token.encode("utf-8")).hexdigest()[:16], 16) % self.dimension
            vec[idx] += 1.0
        norm = np.linalg.norm(vec) or 1.0
        return (vec / norm).tolist()


class FakeBackend:
    def __init__(self, name="fake", available=True, fail=False, dimension=DIMENSION, delay=0.0):
        self.name = name
        self.available = available
        self.fail = fail
        self.dimension = dimension
        self.delay = delay
        self.load_calls = 0

    def is_available(self):
        return self.available

    def load(self, model_name):
        self.load_calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            raise RuntimeError(f"{self.name} failed to initialize")
        return FakeEncoder(self.dimension)


@pytest.fixture
def fake_backend():
    return FakeBackend


@pytest.fixture
def fake_engine():
    engine = embedding.EmbeddingEngine(model_name="fake-model", backends=[FakeBackend()], dimension=DIMENSION)
    embedding.set_engine(engine)
    yield engine
    embedding.set_engine(None)


@pytest.fixture
def store():
    return VectorStore(InMemoryStorage(), key="test_vectors", dimension=DIMENSION)


@pytest.fixture
def registry():
    return InMemoryRegistry()


def unit_vector(similarity, dimension=DIMENSION):
    """A unit vector whose cosine similarity with basis_vector() is ``similarity``."""
    vec = [0.0] * dimension
    vec[0] = similarity
    vec[1] = float(np.sqrt(1.0 - similarity ** 2))
    return vec


def basis_vector(dimension=DIMENSION):
    vec = [0.0] * dimension
    vec[0] = 1.0
    return vec


@pytest.fixture
def vectors():
    return unit_vector, basis_vector
