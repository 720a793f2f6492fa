from __future__ import annotations

from collections import Counter
from typing import List

import pytest


def pytest_collection_modifyitems(config: pytest.Config, items: List[pytest.Item]) -> None:
    """Table-driven cases share one test function; reject ids that collide."""
    del config

    counts = Counter(item.nodeid for item in items)
    repeated = sorted(nodeid for nodeid, n in counts.items() if n > 1)
    if repeated:
        listing = "\n".join(f"  {nodeid}" for nodeid in repeated)
        raise pytest.UsageError(f"case ids collide, rename them:\n{listing}")
