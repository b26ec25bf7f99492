from typing import List, Optional

import dataclasses
import logging

from ..config.features import DEFAULT_WEIGHT_TOTAL
from ..gateway.types import BackendRef, HTTPRoute, RouteMatch
from .rules import append_rule

logger = logging.getLogger("ingressgw.merge")


class WeightAllocator:
    """
    Splits traffic for one match-key group between its baseline backends
    and its weighted canaries.

    Canaries keep the weight they asked for. Whatever is left of the weight
    total is shared evenly (integer division) by the baseline backends, and
    no backend ends up above the total.
    """

    weight_total: int
    explicit_weight: int
    backends: List[BackendRef]
    num_baseline: int
    num_canary: int

    def __init__(self) -> None:
        self.weight_total = DEFAULT_WEIGHT_TOTAL
        self.explicit_weight = 0
        self.backends = []
        self.num_baseline = 0
        self.num_canary = 0

    def add_baseline(self, ref: BackendRef) -> None:
        self.backends.append(dataclasses.replace(ref, weight=None))
        self.num_baseline += 1

    def add_canary(self, ref: BackendRef, weight: int, weight_total: Optional[int] = None) -> None:
        self.backends.append(dataclasses.replace(ref, weight=weight))
        self.explicit_weight += weight
        self.num_canary += 1

        # The last canary to name a total wins.
        if weight_total is not None and weight_total > 0:
            self.weight_total = weight_total

    @property
    def remaining(self) -> int:
        return max(0, self.weight_total - self.explicit_weight)

    def allocate(self) -> List[BackendRef]:
        if not self.backends:
            return []

        # With no baseline backends nothing is unweighted, so the share is
        # never used; dividing by the canary count just keeps it defined.
        divisor = self.num_baseline if self.num_baseline > 0 else self.num_canary
        share = self.remaining // divisor if divisor > 0 else 0

        for ref in self.backends:
            if ref.weight is None:
                ref.weight = share

            if ref.weight > self.weight_total:
                logger.debug("clamping weight %d of %s to %d", ref.weight, ref.name, self.weight_total)
                ref.weight = self.weight_total

        return self.backends


def merge_weighted_backends(route: HTTPRoute, backends: List[BackendRef],
                            match: Optional[RouteMatch] = None) -> None:
    """
    Push allocated weights into the route. Every backend reference with the
    same name takes the new weight in place; a backend that no rule carries
    yet gets a rule of its own.
    """

    for backend in backends:
        found = False

        for rule in route.rules:
            for ref in rule.backend_refs:
                if ref.name == backend.name:
                    ref.weight = backend.weight
                    found = True
                    break

        if not found:
            append_rule(route, [match] if match is not None else [], [], [backend])
