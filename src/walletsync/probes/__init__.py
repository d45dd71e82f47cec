"""Read-only chain state probes (balances and activation)."""

from walletsync.probes.base import ChainStateProbe, SimulatedProbe
from walletsync.probes.factory import ProbeSet, create_probes

__all__ = ["ChainStateProbe", "ProbeSet", "SimulatedProbe", "create_probes"]
