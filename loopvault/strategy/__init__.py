"""Loop strategy core: simulation, health evaluation, execution and planning."""
from .executor import LoopExecutor
from .health import calc_health_factor, calc_ltv, evaluate
from .rebalance import plan_compound, plan_deleverage
from .simulator import project_yield, simulate, validate_loop_config

__all__ = [
    "LoopExecutor",
    "calc_health_factor",
    "calc_ltv",
    "evaluate",
    "plan_compound",
    "plan_deleverage",
    "project_yield",
    "simulate",
    "validate_loop_config",
]
