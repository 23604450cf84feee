from .departure_reconciler import DepartureReconciler
from .refresh_controller import BoardTarget, RefreshController
from .timetable_snapshot import TimetableSnapshot

__all__ = [
    "BoardTarget",
    "DepartureReconciler",
    "RefreshController",
    "TimetableSnapshot",
]
