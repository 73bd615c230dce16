"""Step routines usable by :func:`boxlbfgs.driver.minimize`.

Any callable with the keyword signature of :func:`setulb` can be injected as
the driver's ``step``; :func:`setulb` here is the pure-NumPy default.
"""

from .linalg import box, free_variables, projected_grad_norm, two_loop
from .setulb import setulb

__all__ = ["box", "free_variables", "projected_grad_norm", "setulb", "two_loop"]
