"""Services layer: upstream access and turn orchestration."""

from .bridge import BridgeService
from .upstream import UpstreamClient


__all__ = ["BridgeService", "UpstreamClient"]
