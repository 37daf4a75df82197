"""Root-mean-square mapping quality from merged raw sums."""

import logging
import math
from typing import Any

logger = logging.getLogger(__name__)

RAW_MQ_AND_DP_KEY = "RAW_MQandDP"
DEPRECATED_RAW_MQ_KEY = "RAW_MQ"
MQ_DP_KEY = "MQ_DP"
MQ_KEY = "MQ"


def _as_float_list(value: Any) -> list[float]:
    if isinstance(value, str):
        return [float(v) for v in value.split(",")]
    if isinstance(value, (list, tuple)):
        return [float(v) for v in value]
    return [float(value)]


def raw_mq_components(info: dict[str, Any], depth: int | None) -> tuple[float, int] | None:
    """(sum of squared MQ, read count) from the raw keys in ``info``."""
    if RAW_MQ_AND_DP_KEY in info:
        values = _as_float_list(info[RAW_MQ_AND_DP_KEY])
        if len(values) != 2:
            raise ValueError(f"{RAW_MQ_AND_DP_KEY} must have 2 values, got {len(values)}")
        return values[0], int(values[1])
    if DEPRECATED_RAW_MQ_KEY in info:
        squared_sum = _as_float_list(info[DEPRECATED_RAW_MQ_KEY])[0]
        if MQ_DP_KEY in info:
            reads = int(_as_float_list(info[MQ_DP_KEY])[0])
        elif depth is not None:
            reads = depth
        else:
            return None
        return squared_sum, reads
    return None


def calculate_rms(squared_sum: float, reads: int) -> float:
    return math.sqrt(squared_sum / reads)


def finalize_raw_mq(info: dict[str, Any], depth: int | None) -> dict[str, Any]:
    """Return ``info`` with raw MQ keys replaced by a formatted MQ value."""
    components = raw_mq_components(info, depth)
    if components is None:
        return dict(info)

    squared_sum, reads = components
    if reads <= 0:
        logger.debug("Raw mapping quality has no reads; MQ left unset")
        return dict(info)

    finalized = {
        k: v for k, v in info.items() if k not in (RAW_MQ_AND_DP_KEY, DEPRECATED_RAW_MQ_KEY)
    }
    finalized[MQ_KEY] = f"{calculate_rms(squared_sum, reads):.2f}"
    return finalized
