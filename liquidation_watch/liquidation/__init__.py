"""Pure liquidation model: classification, max repay and profit."""
from .classifier import classify, close_factor_for
from .math import compute_max_repay
from .profit import evaluate_profit

__all__ = ["classify", "close_factor_for", "compute_max_repay", "evaluate_profit"]
