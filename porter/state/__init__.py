"""State management modules."""

from porter.state.manager import StateManager
from porter.state.store import DriverStore, OrderStore, Stores, VehicleStore

__all__ = ["StateManager", "Stores", "OrderStore", "DriverStore", "VehicleStore"]
