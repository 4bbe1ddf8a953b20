"""Engine services."""

from vwiz.services.interfaces import ICompositionEngine, ProgressCallback
from vwiz.services.remotion import RemotionEngine

__all__ = ["ICompositionEngine", "ProgressCallback", "RemotionEngine"]
