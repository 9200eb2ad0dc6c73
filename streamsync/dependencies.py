from typing import Any, Dict, Optional

from .config import Settings
from .core.liveness import LivenessRegistry
from .services.orchestrator import PipelineOrchestrator
from .services.process.base_launcher import BaseLauncher
from .services.process.subprocess_launcher import SubprocessLauncher

# Global singleton instances
_singletons: Dict[str, Any] = {}


def configure_settings(settings: Settings) -> Settings:
    """
    Install settings built elsewhere (e.g. from the command line).

    Everything built from the previous settings is dropped with them.
    """
    _singletons.clear()
    _singletons["settings"] = settings
    return settings


def get_settings() -> Settings:
    """Hent Settings singleton instance."""
    if "settings" not in _singletons:
        _singletons["settings"] = Settings()
    return _singletons["settings"]


def get_liveness_registry() -> LivenessRegistry:
    if "liveness_registry" not in _singletons:
        _singletons["liveness_registry"] = LivenessRegistry()
    return _singletons["liveness_registry"]


def get_launcher() -> BaseLauncher:
    if "launcher" not in _singletons:
        _singletons["launcher"] = SubprocessLauncher(settings=get_settings())
    return _singletons["launcher"]


def get_orchestrator(launcher: Optional[BaseLauncher] = None) -> PipelineOrchestrator:
    """
    Hent PipelineOrchestrator singleton instance.

    A ``launcher`` given before the orchestrator exists is installed as the
    launcher singleton. Once built, the orchestrator keeps its launcher and a
    different one is rejected.
    """
    if launcher is not None:
        existing = _singletons.get("orchestrator")
        if existing is not None and existing.launcher is not launcher:
            raise RuntimeError("Orchestrator already exists with another launcher")
        _singletons["launcher"] = launcher

    if "orchestrator" not in _singletons:
        _singletons["orchestrator"] = PipelineOrchestrator(
            settings=get_settings(),
            launcher=get_launcher(),
            liveness=get_liveness_registry(),
        )
    return _singletons["orchestrator"]


def reset_singletons() -> None:
    """Reset all singletons - useful for testing."""
    _singletons.clear()
