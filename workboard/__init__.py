"""Work item board engine: status transitions with approval gating, faceted paginated retrieval."""

from .config import BoardConfig, load_config
from .session import BoardSession

__all__ = ["BoardConfig", "BoardSession", "load_config"]
