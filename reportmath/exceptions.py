"""
Error taxonomy for reportmath.

All errors raised by the numerical core derive from ReportMathError so the
reporting layer can decide whether to surface, log, or abort.
"""


class ReportMathError(Exception):
    """Base class for all reportmath errors."""
    pass


class InvalidInputError(ReportMathError, ValueError):
    """Malformed or mismatched input arrays."""
    pass


class InvalidKError(ReportMathError, ValueError):
    """Cluster count out of range for the point set."""
    pass


class EmptyClusterError(ReportMathError):
    """A cluster received no points during a centroid update."""
    
    def __init__(self, cluster_id: int, iteration: int):
        self.cluster_id = cluster_id
        self.iteration = iteration
        super().__init__(
            f"Cluster {cluster_id} has no members after iteration {iteration}"
        )


class NonConvergenceError(ReportMathError):
    """The optimizer exhausted its budget without meeting its tolerance."""
    
    def __init__(self, message: str, iterations: int = 0):
        self.iterations = iterations
        super().__init__(message)


class SingularHessianError(ReportMathError):
    """Standard errors are unobtainable because the information matrix is singular."""
    pass
