"""
Centralized dependency management for bayesact.

PyMC, Bambi and ArviZ are hard requirements. The external NUTS samplers
that PyMC can delegate to (numpyro, nutpie, blackjax) are optional and are
only imported when a model is fit with the matching backend.

Note: Dependency checking is not done automatically on import.
To check dependencies, call check_dependencies() in your initialization code.
"""

import importlib
from typing import Dict, Optional, Any
from functools import lru_cache

from utils.logging_utils import get_logger

logger = get_logger()

# Backend tag -> importable module providing the sampler
SAMPLER_MODULES = {
    "numpyro": "numpyro",
    "nutpie": "nutpie",
    "blackjax": "blackjax",
}


class DependencyManager:
    """
    Manages optional dependencies for the application.

    Modules are imported on demand and cached; availability is recorded so
    it can be reported once at start-up.
    """

    def __init__(self):
        """Initialize the dependency manager."""
        self.dependency_status = {}
        self.modules = {}

    def check_dependencies(self) -> Dict[str, bool]:
        """
        Check all optional dependencies and log their status.

        Returns:
            Dictionary mapping dependency names to availability status.
        """
        for backend, module_name in SAMPLER_MODULES.items():
            self._check_single_dependency(
                module_name, module_name,
                f"The '{backend}' sampler backend will be unavailable."
            )

        logger.info("Dependency status:")
        for dep, available in self.dependency_status.items():
            status = "Available" if available else "Not available"
            logger.info(f"  {dep}: {status}")

        return self.dependency_status.copy()

    def _check_single_dependency(self, module_name: str, display_name: str, missing_message: str) -> bool:
        """
        Check for a single dependency and log appropriate messages.

        Args:
            module_name: Name of the module to import
            display_name: Display name for logging
            missing_message: Message to log if dependency is missing

        Returns:
            True if dependency is available, False otherwise
        """
        try:
            if module_name not in self.modules:
                self.modules[module_name] = importlib.import_module(module_name)
            self.dependency_status[display_name] = True
            return True
        except ImportError:
            logger.warning(f"{display_name} not available. {missing_message}")
            self.dependency_status[display_name] = False
            return False

    def get_module(self, module_name: str) -> Optional[Any]:
        """
        Get a module by name if it's available.

        Args:
            module_name: Name of the module to get

        Returns:
            Module object if available, None otherwise
        """
        if module_name in self.modules:
            return self.modules[module_name]

        try:
            module = importlib.import_module(module_name)
            self.modules[module_name] = module
            return module
        except ImportError:
            return None

    def has_sampler(self, backend: str) -> bool:
        """
        Check whether the sampler behind a backend tag can be imported.

        The default ``pymc`` backend is always available.
        """
        if backend not in SAMPLER_MODULES:
            return backend == "pymc"
        return self.get_module(SAMPLER_MODULES[backend]) is not None


@lru_cache(maxsize=1)
def get_dependency_manager() -> DependencyManager:
    """Get the singleton instance of the dependency manager."""
    return DependencyManager()


def check_dependencies() -> Dict[str, bool]:
    """Check all dependencies."""
    return get_dependency_manager().check_dependencies()
