import random
from collections import Counter

import pytest

from llmproxy.models import BackendEntry
from llmproxy.selector import BackendSelector


def test_single_candidate_is_always_chosen():
    entry = BackendEntry("m", "localhost:8001")
    selector = BackendSelector()
    assert all(selector.select([entry]) is entry for _ in range(20))


def test_selection_is_roughly_uniform():
    candidates = [BackendEntry("m", f"localhost:{8000 + i}") for i in range(4)]
    selector = BackendSelector(random.Random(42))

    trials = 8000
    counts = Counter(selector.select(candidates).addr for _ in range(trials))

    assert set(counts) == {c.addr for c in candidates}
    for count in counts.values():
        assert abs(count - trials / 4) < trials * 0.05


def test_empty_candidates_is_a_caller_error():
    with pytest.raises((IndexError, ValueError)):
        BackendSelector().select([])
