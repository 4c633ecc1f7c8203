import random
from typing import Optional, Sequence

from .models import BackendEntry


class BackendSelector:
    """Pick one backend uniformly at random from the candidates for a model.

    No state is carried between calls. Callers must not pass an empty sequence.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def select(self, candidates: Sequence[BackendEntry]) -> BackendEntry:
        return candidates[self._rng.randrange(len(candidates))]
