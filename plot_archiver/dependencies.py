from functools import lru_cache
from typing import Any, Dict, Optional

from .config import Settings
from .core.events.event_bus import DomainEventBus
from .services.archiver import ArchiverService
from .services.capacity_probe import CapacityProbe
from .services.scanner import PlotScannerService

# Global singleton instances
_singletons: Dict[str, Any] = {}


@lru_cache
def get_settings() -> Settings:
    """Hent Settings singleton instance."""
    return Settings()


def get_event_bus() -> DomainEventBus:
    if "event_bus" not in _singletons:
        _singletons["event_bus"] = DomainEventBus()
    return _singletons["event_bus"]


def get_capacity_probe() -> CapacityProbe:
    if "capacity_probe" not in _singletons:
        _singletons["capacity_probe"] = CapacityProbe(
            timeout_seconds=get_settings().capacity_probe_timeout_seconds
        )
    return _singletons["capacity_probe"]


async def get_archiver() -> ArchiverService:
    """Archiver singleton; destinations are initialized on first call."""
    if "archiver" not in _singletons:
        _singletons["archiver"] = await ArchiverService.create(
            get_settings(),
            capacity_probe=get_capacity_probe(),
            event_bus=get_event_bus(),
        )
    return _singletons["archiver"]


def get_plot_scanner(archiver: Optional[ArchiverService] = None) -> PlotScannerService:
    if "plot_scanner" not in _singletons:
        if archiver is None:
            archiver = _singletons.get("archiver")
        if archiver is None:
            raise RuntimeError("Archiver must be created before the plot scanner")
        _singletons["plot_scanner"] = PlotScannerService.from_settings(
            get_settings(), on_plot_ready=archiver.enqueue
        )
    return _singletons["plot_scanner"]


def reset_singletons() -> None:
    _singletons.clear()
    get_settings.cache_clear()
