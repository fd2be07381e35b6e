"""
Background maintenance: periodic eviction sweeps over the graph store.
"""

from knowledge_engine.maintenance.maintainer import (
    GraphMaintainer,
    MaintenanceAction,
    SweepReport,
)

__all__ = ["GraphMaintainer", "MaintenanceAction", "SweepReport"]
