"""
Identifier generation.

Components take an `IdGenerator` so tests can swap random UUIDs for a
predictable sequence.
"""

import itertools
import uuid
from typing import Callable

IdGenerator = Callable[[], str]


def uuid_ids() -> str:
    return str(uuid.uuid4())


class SequentialIds:
    """Yields 'prefix-1', 'prefix-2', ... in call order."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"
