"""Endpoint and query parameter selection policy."""

import random
from collections.abc import Sequence

from probe_dispatcher.ports.settings import QueryParam, SelectionStrategy

__all__ = ["pick_random_endpoint", "select_endpoints", "sample_query_params"]


def pick_random_endpoint(
    endpoints: Sequence[str], rng: random.Random | None = None
) -> str | None:
    """Pick one endpoint uniformly at random.

    Args:
        endpoints: Candidate endpoint paths.
        rng: Random source; defaults to the ``random`` module.

    Returns:
        The chosen endpoint, or None when there is nothing to choose from.
    """
    if not endpoints:
        return None
    return (rng or random).choice(endpoints)


def select_endpoints(
    endpoints: Sequence[str],
    strategy: SelectionStrategy,
    rng: random.Random | None = None,
) -> list[str]:
    """Return the endpoints to call in one dispatch cycle.

    RANDOM samples the fleet (one endpoint), BROADCAST polls every
    endpoint in configured order. An empty set always yields [].
    """
    if strategy is SelectionStrategy.BROADCAST:
        return list(endpoints)

    chosen = pick_random_endpoint(endpoints, rng)
    return [] if chosen is None else [chosen]


def sample_query_params(
    params: Sequence[QueryParam], rng: random.Random | None = None
) -> list[tuple[str, str]]:
    """Resolve configured query parameters into concrete (key, value) pairs.

    Literal parameters pass through unchanged; randomized parameters get an
    independent uniform draw from [1, range] each time this is called.

    Args:
        params: Configured query parameters.
        rng: Random source; defaults to the ``random`` module.

    Returns:
        Ordered list of string pairs, ready for URL encoding.
    """
    source = rng or random
    pairs: list[tuple[str, str]] = []
    for param in params:
        if param.is_randomized:
            pairs.append((param.key, str(source.randint(1, param.range))))
        else:
            pairs.append((param.key, str(param.value)))
    return pairs
