# selection.py
"""
Ranking of sibling branches that compete for the same reference.

Canonical branches come first, then higher net vote score. Python's sort is
stable, so equal branches keep the order they were given in; the store hands
them out oldest first, which makes the oldest contribution win a tie.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from branch_store import Branch


@dataclass
class Selection:
    reference: str
    winner: Optional[Branch]
    ranked: List[Branch] = field(default_factory=list)

    @property
    def alternatives_count(self) -> int:
        return alternatives_count(self.ranked)


def score(branch: Branch) -> int:
    return sum(v.value for v in branch.votes)


def rank_branches(branches: Iterable[Branch]) -> List[Branch]:
    return sorted(branches, key=lambda b: (not b.is_canonical, -score(b)))


def select_winner(branches: Iterable[Branch]) -> Optional[Branch]:
    ranked = rank_branches(branches)
    return ranked[0] if ranked else None


def alternatives_count(branches: List[Branch]) -> int:
    return max(0, len(branches) - 1)


def winners_by_reference(branches: Iterable[Branch]) -> Dict[str, Selection]:
    """Run the ranking separately for every reference present in `branches`."""
    grouped: Dict[str, List[Branch]] = {}
    for b in branches:
        grouped.setdefault(b.reference, []).append(b)
    out: Dict[str, Selection] = {}
    for reference, siblings in grouped.items():
        ranked = rank_branches(siblings)
        out[reference] = Selection(reference, ranked[0], ranked)
    return out
