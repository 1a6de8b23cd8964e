"""
FSP Simulator Package

Core imports are lazily loaded so that importing a submodule does not pull
in the whole simulator. For direct module access, import from submodules:

    from fspsim.protocol import EpochClock, SigningPolicy
    from fspsim.authority import LocalAuthority
    from fspsim.simulation import Simulation
"""

__version__ = "1.0.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'Simulation':
        from .simulation import Simulation
        return Simulation
    elif name == 'SimulationConfig':
        from .config import SimulationConfig
        return SimulationConfig
    elif name == 'EpochClock':
        from .protocol.epoch import EpochClock
        return EpochClock
    elif name == 'FSPException':
        from .exceptions import FSPException
        return FSPException
    raise AttributeError(f"module 'fspsim' has no attribute {name!r}")

__all__ = ['Simulation', 'SimulationConfig', 'EpochClock', 'FSPException']
