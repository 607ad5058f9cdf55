"""A duelist's deck: main, extra and side piles."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field


@dataclass
class Deck:
    """Card codes of the three piles, with the code of any error found when building it."""

    main: list[int] = field(default_factory=list)
    extra: list[int] = field(default_factory=list)
    side: list[int] = field(default_factory=list)
    error: int = 0

    def code_map(self) -> dict[int, int]:
        """Count every card code across all piles, ordered by code."""
        counts = Counter(self.main)
        counts.update(self.extra)
        counts.update(self.side)
        return dict(sorted(counts.items()))