"""Advisory optimizers: request complexity, cost, peak load and mobile clients."""

from billsplit_core.services.optimization.complexity import ComplexityScorer
from billsplit_core.services.optimization.cost_optimizer import CostOptimizer
from billsplit_core.services.optimization.device_optimizer import DeviceOptimizer, is_mobile_user_agent

__all__ = [
    "ComplexityScorer",
    "CostOptimizer",
    "DeviceOptimizer",
    "is_mobile_user_agent",
]
