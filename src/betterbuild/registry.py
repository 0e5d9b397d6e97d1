# registry.py
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List

from .errors import DuplicateTargetError, RegistryFrozenError, UnknownTargetError
from .model import Target


class TargetRegistry:
    """
    Named targets in declaration order.

    Frozen by the first plan; freezing validates every dependency and
    ordering reference.
    """

    def __init__(self, targets: Iterable[Target] = ()):
        self._targets: Dict[str, Target] = {}
        self._positions: Dict[str, int] = {}
        self._frozen = False
        for t in targets:
            self.register(t)

    def register(self, target: Target) -> Target:
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register target {target.name!r}: registry is frozen once a plan has been computed"
            )
        if target.name in self._targets:
            raise DuplicateTargetError(target.name)
        self._positions[target.name] = len(self._targets)
        self._targets[target.name] = target
        return target

    def get(self, name: str) -> Target:
        try:
            return self._targets[name]
        except KeyError:
            raise UnknownTargetError(name, known=self.names()) from None

    def names(self) -> List[str]:
        return list(self._targets)

    def index(self, name: str) -> int:
        """Declaration position, used for deterministic tie-breaking."""
        try:
            return self._positions[name]
        except KeyError:
            raise UnknownTargetError(name, known=self.names()) from None

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        if self._frozen:
            return
        for t in self._targets.values():
            for ref in [*t.depends_on, *t.before, *t.after]:
                if ref not in self._targets:
                    raise UnknownTargetError(ref, known=self.names(), referenced_by=t.name)
        self._frozen = True

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def __iter__(self) -> Iterator[Target]:
        return iter(self._targets.values())

    def __len__(self) -> int:
        return len(self._targets)
