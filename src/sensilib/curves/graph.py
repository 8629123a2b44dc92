"""
Dependency graph of curves.

Curve A depends on curve B when A is built on top of B (a basis
curve over a discount curve, a survival curve over its discount
curve). The graph orders curves so that prerequisites come first;
reverse order visits the most dependent curves first.
"""

from collections import deque
from typing import Callable, Dict, Generic, Iterable, Iterator, List, TypeVar

from ..errors import CyclicDependencyError

T = TypeVar("T")


class DependencyGraph(Generic[T]):
    """
    Read-only, topologically ordered collection.

    Items reachable through ``get_parents`` are pulled into the graph even
    when they are not in ``items``. Ties are broken by discovery order,
    so the ordering is deterministic.
    """

    def __init__(self, items: Iterable[T], get_parents: Callable[[T], Iterable[T]]):
        parents: Dict[int, List[T]] = {}
        discovered: List[T] = []
        seen = set()

        stack = list(items)
        stack.reverse()
        while stack:
            item = stack.pop()
            if id(item) in seen:
                continue
            seen.add(id(item))
            discovered.append(item)
            item_parents = [p for p in get_parents(item) if p is not None]
            parents[id(item)] = item_parents
            stack.extend(reversed(item_parents))

        # Kahn's algorithm in discovery order
        children: Dict[int, List[T]] = {id(x): [] for x in discovered}
        pending = {}
        for item in discovered:
            unique = {id(p): p for p in parents[id(item)]}
            pending[id(item)] = len(unique)
            for p in unique.values():
                children[id(p)].append(item)

        ready = deque(x for x in discovered if pending[id(x)] == 0)
        ordered: List[T] = []
        while ready:
            item = ready.popleft()
            ordered.append(item)
            for child in children[id(item)]:
                pending[id(child)] -= 1
                if pending[id(child)] == 0:
                    ready.append(child)

        if len(ordered) != len(discovered):
            raise CyclicDependencyError("Cyclic dependency detected")

        self._all = ordered
        self._index = {id(x): i for i, x in enumerate(ordered)}
        self._parents = parents

    def reverse_ordered(self) -> Iterator[T]:
        """Items with dependents before their prerequisites."""
        return reversed(self._all)

    def parents_of(self, item: T) -> List[T]:
        """Direct prerequisites of an item in the graph."""
        return list(self._parents[id(item)])

    def index(self, item: T) -> int:
        return self._index[id(item)]

    def __contains__(self, item) -> bool:
        return id(item) in self._index

    def __iter__(self) -> Iterator[T]:
        return iter(self._all)

    def __len__(self) -> int:
        return len(self._all)

    def __getitem__(self, i: int) -> T:
        return self._all[i]

    def __repr__(self) -> str:
        return f"DependencyGraph(size={len(self._all)})"


__all__ = ["DependencyGraph"]
