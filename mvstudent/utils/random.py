"""Random source handling."""

from typing import Optional, Union

import numpy as np

RandomState = Optional[Union[int, np.random.Generator]]


def as_generator(random_state: RandomState) -> Optional[np.random.Generator]:
    """
    Normalize a ``random_state`` argument.

    ``None`` stays ``None`` (no source bound), an int seeds a new
    ``numpy.random.Generator`` and a Generator is returned as is.
    """
    if random_state is None:
        return None
    if isinstance(random_state, np.random.Generator):
        return random_state
    if isinstance(random_state, (int, np.integer)) and not isinstance(random_state, bool):
        return np.random.default_rng(random_state)
    raise ValueError(
        f"random_state must be None, an int or a numpy Generator, got {type(random_state).__name__}"
    )


def resolve_rng(random_state: RandomState,
                bound: Optional[np.random.Generator] = None) -> np.random.Generator:
    """
    Pick the generator for a sampling call.

    Explicit ``random_state`` first, then the ``bound`` generator of the
    distribution, then a fresh default generator.
    """
    rng = as_generator(random_state)
    if rng is not None:
        return rng
    if bound is not None:
        return bound
    return np.random.default_rng()
