from __future__ import annotations

import json
from typing import Any, Mapping


def canonical_dumps(obj: Mapping[str, Any]) -> str:
    """Compact JSON with sorted keys.

    ``RunManager.serialize`` output and save signatures both depend on this
    exact byte layout, so equal states always produce equal text.
    """
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
