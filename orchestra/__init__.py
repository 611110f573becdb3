from orchestra.config import Settings
from orchestra.runtime import OrchestrationCore, build_default_core

__all__ = [
    "OrchestrationCore",
    "Settings",
    "build_default_core",
]
