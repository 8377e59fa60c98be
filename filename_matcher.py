"""
Filename reconciliation strategies.

The service echoes filenames back loosely (spaces swapped for underscores,
extensions dropped, names shortened). Each strategy answers one question:
does this returned name refer to that real file? A ChainedMatcher tries
strategies in precedence order and the first strategy with any hit wins.
"""

import re
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, TypeVar

T = TypeVar("T")

_WS = re.compile(r"\s+")


def normalize_whitespace(name: str) -> str:
    return _WS.sub("_", (name or "").strip())


def stem(name: str) -> str:
    """Text before the first dot ('Amendment 1.final.pdf' -> 'Amendment 1')."""
    return (name or "").split(".")[0]


class FilenameMatcher:
    """Base strategy: subclasses implement `matches`."""
    name = "base"

    def matches(self, real_name: str, candidate: str) -> bool:
        raise NotImplementedError


class ExactMatcher(FilenameMatcher):
    name = "exact"

    def matches(self, real_name: str, candidate: str) -> bool:
        return bool(candidate) and real_name == candidate


class NormalizedMatcher(FilenameMatcher):
    name = "normalized"

    def matches(self, real_name: str, candidate: str) -> bool:
        if not candidate:
            return False
        return normalize_whitespace(real_name) == normalize_whitespace(candidate)


class SubstringMatcher(FilenameMatcher):
    """Stem of either name contained in the other. Empty stems never match."""
    name = "substring"

    def matches(self, real_name: str, candidate: str) -> bool:
        candidate_stem = stem(candidate)
        real_stem = stem(real_name)
        if not candidate_stem or not real_stem:
            return False
        return candidate_stem in real_name or real_stem in candidate


class ChainedMatcher:
    def __init__(self, strategies: Optional[Sequence[FilenameMatcher]] = None):
        self.strategies: List[FilenameMatcher] = list(
            strategies or (ExactMatcher(), NormalizedMatcher(), SubstringMatcher())
        )

    def find(self, real_name: str, candidates: Iterable[T], key: Callable[[T], str]) -> Optional[T]:
        """
        Return the first candidate matched by the highest-precedence strategy.

        Among several candidates hit by the same strategy the earliest one in
        `candidates` order wins.
        """
        items = list(candidates)
        for strategy in self.strategies:
            for item in items:
                if strategy.matches(real_name, key(item) or ""):
                    return item
        return None

    def assign(self, real_names: Sequence[str], candidates: Iterable[T], key: Callable[[T], str]) -> Dict[str, T]:
        """
        Pair real filenames with candidates, strategy by strategy.

        A candidate claimed by a stronger strategy (e.g. an exact hit for
        'Agreement Amendment 1.pdf') is no longer available to a weaker one
        (e.g. a substring hit for 'Agreement.pdf').
        """
        items = list(candidates)
        claimed: Set[int] = set()
        assigned: Dict[str, T] = {}
        for strategy in self.strategies:
            for real_name in real_names:
                if real_name in assigned:
                    continue
                for index, item in enumerate(items):
                    if index in claimed:
                        continue
                    if strategy.matches(real_name, key(item) or ""):
                        assigned[real_name] = item
                        claimed.add(index)
                        break
        return assigned

    def resolve_name(self, candidate: str, real_names: Iterable[str]) -> Optional[str]:
        """Map a name returned by the service back to one real filename."""
        names = list(real_names)
        for strategy in self.strategies:
            for real_name in names:
                if strategy.matches(real_name, candidate or ""):
                    return real_name
        return None


default_matcher = ChainedMatcher()
