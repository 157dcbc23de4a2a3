from __future__ import annotations

from collections.abc import Iterable


def normalize_targets(targets: Iterable[str]) -> tuple[str, ...]:
    """Deduplicate and sort whitelist entries.

    Sorting only makes the whitelist deterministic; matching does not depend
    on order.
    """

    return tuple(sorted(set(targets)))


class TargetFilter:
    def __init__(self, targets: Iterable[str] = ()) -> None:
        self._targets = normalize_targets(targets)

    @property
    def targets(self) -> tuple[str, ...]:
        return self._targets

    def enabled(self, target: str) -> bool:
        if not self._targets:
            return True
        # Plain string prefixes, so "a" also allows "ab" and "a::b".
        return target.startswith(self._targets)

    def __repr__(self) -> str:
        return f"TargetFilter({list(self._targets)!r})"
