from __future__ import annotations


class SimulationError(Exception):
    """Base class for failures surfaced by the simulation engine."""


class SiteNotFoundError(SimulationError):
    def __init__(self, site_id: int | None) -> None:
        self.site_id = site_id
        super().__init__(f"Site {site_id} not found")


class AlreadyRunningError(SimulationError):
    def __init__(self, site_id: int) -> None:
        self.site_id = site_id
        super().__init__(f"Simulation already running for site {site_id}")


class NotRunningError(SimulationError):
    def __init__(self, site_id: int) -> None:
        self.site_id = site_id
        super().__init__(f"No simulation running for site {site_id}")


class PersistenceError(SimulationError):
    """Raised when the storage layer rejects a read or write."""


class PublishError(SimulationError):
    """Raised when an event cannot be handed to one subscriber.

    Never escapes :class:`~pvsim_api.services.publisher.Publisher`.
    """
