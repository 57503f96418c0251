from __future__ import annotations

from .encoding import b64d, b64e
from .naming import metric_name
from .validation import check_segment

__all__ = ["b64d", "b64e", "check_segment", "metric_name"]
