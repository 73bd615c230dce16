"""PyTorch integration for boxlbfgs."""

from .bridge import TensorObjective, minimize_tensor, to_vector

__all__ = ["TensorObjective", "minimize_tensor", "to_vector"]
