"""
Transactional Boundary Adapter.

Runs a block inside an atomic-commit scope provided by a Persistence adapter:
a falsy result or a Rollback signal discards every write made inside the
block (including writes of nested transitions), anything truthy commits.
With transactions disabled, or without persistence, the block simply runs.
"""

import logging
from typing import Any, Callable, Optional

from ...exceptions import Rollback
from ...repositories.persistence import Persistence

logger = logging.getLogger(__name__)


def within_transaction(
    persistence: Optional[Persistence],
    block: Callable[[], Any],
    use_transactions: bool = True,
) -> Any:
    if not use_transactions or persistence is None:
        # No atomicity in this mode: callers must not rely on rollback.
        return block()

    boundary = persistence.begin()
    try:
        result = block()
    except Rollback:
        logger.debug("Rollback requested inside transaction")
        boundary.rollback()
        return None
    except BaseException:
        boundary.rollback()
        raise

    if result:
        boundary.commit()
    else:
        boundary.rollback()
    return result
