"""Error handling for stepretry.

- RetryError: base for runner failures
- StepError/ChainError/ParallelError: topology-tagged wrappers
- is_error/iter_chain: sentinel matching through the wrap chain
"""

from .errors import (
    ChainError,
    ParallelError,
    RetryError,
    Sentinel,
    StepError,
    is_error,
    iter_chain,
)

__all__ = [
    "RetryError", "StepError", "ChainError", "ParallelError",
    "Sentinel", "is_error", "iter_chain",
]
