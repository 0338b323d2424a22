"""Process lifecycle coordination for publisher and consumer roles."""

from .lifecycle_config import SHUTDOWN_SIGNALS, LifecycleDependencies
from .lifecycle_controller import EXIT_FAILURE, EXIT_SUCCESS, LifecycleController

__all__ = [
    "EXIT_FAILURE",
    "EXIT_SUCCESS",
    "LifecycleController",
    "LifecycleDependencies",
    "SHUTDOWN_SIGNALS",
]
