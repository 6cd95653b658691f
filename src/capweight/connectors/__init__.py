"""Exchange connectors."""

from capweight.connectors.base import BaseExchange
from capweight.connectors.simulated import SimulatedExchange

__all__ = ["BaseExchange", "SimulatedExchange"]
