from .base import EngineInfo, InferenceEngine
from .factory import RuntimeKind, create_engine, get_available_engines
from .scrfd_specs import PACK_SPECS

__all__ = [
    "InferenceEngine",
    "EngineInfo",
    "RuntimeKind",
    "create_engine",
    "get_available_engines",
    "PACK_SPECS",
]
