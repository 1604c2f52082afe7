"""
K-means clustering implementation for reportmath.

This module provides a custom implementation of K-means clustering with
seeded initialization, an explicit empty-cluster policy, a per-iteration
history for step-by-step plots, and the silhouette coefficient.

Cluster labels are 1-based: a run with k clusters assigns every point a
label in 1..k, and label j refers to row j - 1 of the centroid array.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import numpy as np
from scipy.spatial.distance import pdist, squareform

from reportmath.exceptions import EmptyClusterError, InvalidInputError, InvalidKError
from reportmath.utils.general import as_matrix, read_only

# Set up logging
logger = logging.getLogger(__name__)

EMPTY_CLUSTER_POLICIES = ('retain', 'error')


class KMeansState(Enum):
    """States of a single clustering run."""

    INITIALIZED = 'initialized'
    ASSIGNING = 'assigning'
    UPDATING = 'updating'
    CONVERGED = 'converged'
    MAX_ITER_EXCEEDED = 'max_iter_exceeded'


class Cluster:
    """
    Represents a cluster in K-means clustering.
    """

    def __init__(self,
                center: np.ndarray,
                members: Optional[List[int]] = None,
                id: Optional[int] = None):
        """
        Initialize a cluster with a center and optional members.

        Args:
            center: The center of the cluster
            members: Row indices of the points belonging to the cluster
            id: Cluster label (1..k)
        """
        self.center = np.array(center, dtype=float)
        self.members = [] if members is None else list(members)
        self.id = id

    def add_member(self, idx: int) -> None:
        """
        Add a member to the cluster.

        Args:
            idx: Index of the member to add
        """
        self.members.append(idx)

    def clear_members(self) -> None:
        """Clear all members from the cluster."""
        self.members = []

    def update_center(self, data: np.ndarray) -> None:
        """
        Move the center to the mean of the cluster's members.

        A cluster with no members keeps its current center.

        Args:
            data: Data matrix containing all points
        """
        if not self.members:
            return

        self.center = np.mean(data[self.members], axis=0)

    def __repr__(self) -> str:
        """String representation of the cluster."""
        return f"Cluster(id={self.id}, members={len(self.members)})"


@dataclass
class KMeansStep:
    """Snapshot of one assign/update iteration."""

    iteration: int
    centers: np.ndarray
    labels: np.ndarray
    wcss: float
    shift: float


@dataclass
class KMeansResult:
    """
    Outcome of a clustering run.

    The centers and labels are returned for both terminal states;
    ``state`` tells the caller which one was reached.
    """

    centers: np.ndarray
    labels: np.ndarray
    state: KMeansState
    iterations: int
    wcss: float
    history: List[KMeansStep] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.state is KMeansState.CONVERGED

    @property
    def k(self) -> int:
        return self.centers.shape[0]

    def cluster_sizes(self) -> np.ndarray:
        """Number of points assigned to each label 1..k."""
        return np.bincount(self.labels, minlength=self.k + 1)[1:]

    def clusters(self) -> List[Cluster]:
        """
        Object view of the result, one Cluster per label.

        Returns:
            List of clusters ordered by label
        """
        return [
            Cluster(self.centers[j], np.flatnonzero(self.labels == j + 1).tolist(), j + 1)
            for j in range(self.k)
        ]

    def to_dict(self, data_indices: Optional[List[Any]] = None) -> Dict[str, Any]:
        """
        Convert the result to a dictionary for serialization.

        Args:
            data_indices: Optional mapping from row positions to original row names

        Returns:
            Dictionary with clusters, state and diagnostics
        """
        return {
            'state': self.state.value,
            'iterations': self.iterations,
            'wcss': float(self.wcss),
            'clusters': clusters_to_dict(self.clusters(), data_indices)
        }


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """
    Calculate Euclidean distance between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Euclidean distance
    """
    return float(np.linalg.norm(a - b))


def squared_distances(data: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Squared Euclidean distance from every point to every center.

    Args:
        data: Data matrix (n_points x n_features)
        centers: Centroid matrix (k x n_features)

    Returns:
        Matrix of shape (n_points, k)
    """
    diff = data[:, np.newaxis, :] - centers[np.newaxis, :, :]
    return np.sum(diff ** 2, axis=2)


def validate_k(k: Any, n_points: int) -> int:
    """
    Check that k is an integer in [1, n_points].

    Args:
        k: Requested number of clusters
        n_points: Number of points available

    Returns:
        k as a plain int
    """
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise InvalidKError(f"k must be an integer, got {k!r}")

    if k < 1 or k > n_points:
        raise InvalidKError(f"k must be between 1 and {n_points}, got {k}")

    return int(k)


def _random_state(seed: Union[None, int, np.random.RandomState]) -> np.random.RandomState:
    if isinstance(seed, np.random.RandomState):
        return seed
    return np.random.RandomState(seed)


def init_centers(data: np.ndarray,
                k: int,
                rng: Union[None, int, np.random.RandomState] = None) -> np.ndarray:
    """
    Seed k centers by sampling distinct points without replacement.

    Args:
        data: Data matrix
        k: Number of clusters
        rng: Seed or RandomState used for sampling

    Returns:
        Centroid matrix (k x n_features)
    """
    k = validate_k(k, data.shape[0])
    indices = _random_state(rng).choice(data.shape[0], size=k, replace=False)
    return data[indices].astype(float)


def assign_points(data: np.ndarray, centers: np.ndarray) -> np.ndarray:
    """
    Assign each point to its nearest center.

    Ties go to the center with the lowest index.

    Args:
        data: Data matrix
        centers: Centroid matrix

    Returns:
        Labels in 1..k, one per point
    """
    return np.argmin(squared_distances(data, centers), axis=1) + 1


def update_centers(data: np.ndarray,
                  labels: np.ndarray,
                  centers: np.ndarray,
                  empty_cluster: str = 'retain',
                  iteration: int = 0) -> np.ndarray:
    """
    Recompute each center as the mean of the points assigned to it.

    Args:
        data: Data matrix
        labels: Current labels (1..k)
        centers: Centers used for the assignment
        empty_cluster: 'retain' keeps the previous center of a cluster with
            no points, 'error' raises EmptyClusterError
        iteration: Iteration number, used in error reports

    Returns:
        New centroid matrix
    """
    if empty_cluster not in EMPTY_CLUSTER_POLICIES:
        raise InvalidInputError(f"Unknown empty-cluster policy: {empty_cluster}")

    new_centers = np.array(centers, dtype=float)

    for j in range(centers.shape[0]):
        members = labels == j + 1
        if not np.any(members):
            if empty_cluster == 'error':
                raise EmptyClusterError(j + 1, iteration)
            logger.debug(f"Cluster {j + 1} is empty at iteration {iteration}, keeping its center")
            continue
        new_centers[j] = np.mean(data[members], axis=0)

    return new_centers


def centroid_shift(old_centers: np.ndarray, new_centers: np.ndarray) -> float:
    """
    Total movement of the centers between two iterations.

    Args:
        old_centers: Centers before the update
        new_centers: Centers after the update

    Returns:
        Sum of the L2 distances between matching centers
    """
    return float(np.sum(np.linalg.norm(new_centers - old_centers, axis=1)))


def wcss(data: np.ndarray, centers: np.ndarray, labels: np.ndarray) -> float:
    """
    Within-cluster sum of squares.

    Args:
        data: Data matrix
        centers: Centroid matrix
        labels: Labels in 1..k

    Returns:
        Sum of squared distances from each point to its assigned center
    """
    return float(np.sum((data - centers[labels - 1]) ** 2))


def cluster_wcss(data: np.ndarray, centers: np.ndarray, labels: np.ndarray) -> np.ndarray:
    """Within-cluster sum of squares for each label 1..k."""
    per_point = np.sum((data - centers[labels - 1]) ** 2, axis=1)
    return np.bincount(labels, weights=per_point, minlength=centers.shape[0] + 1)[1:]


def _run(data: np.ndarray,
        centers: np.ndarray,
        max_iter: int,
        tol: float,
        empty_cluster: str,
        track_history: bool) -> KMeansResult:
    """
    Iterate assignment and update from the given centers.
    """
    state = KMeansState.INITIALIZED
    history = []
    iteration = 0

    for iteration in range(1, max_iter + 1):
        state = KMeansState.ASSIGNING
        labels = assign_points(data, centers)

        state = KMeansState.UPDATING
        new_centers = update_centers(data, labels, centers, empty_cluster, iteration)
        shift = centroid_shift(centers, new_centers)
        centers = new_centers

        if track_history:
            history.append(KMeansStep(
                iteration=iteration,
                centers=centers.copy(),
                labels=labels.copy(),
                wcss=wcss(data, centers, labels),
                shift=shift
            ))

        logger.debug(f"Iteration {iteration}: centroid shift {shift:.6g}")

        if shift < tol:
            state = KMeansState.CONVERGED
            break

    if state is not KMeansState.CONVERGED:
        state = KMeansState.MAX_ITER_EXCEEDED

    # Labels always match the returned centers
    labels = assign_points(data, centers)

    return KMeansResult(
        centers=centers,
        labels=labels,
        state=state,
        iterations=iteration,
        wcss=wcss(data, centers, labels),
        history=history
    )


def kmeans(data: Any,
          k: int,
          max_iter: int = 100,
          tol: float = 1e-4,
          seed: Union[None, int, np.random.RandomState] = None,
          n_init: int = 1,
          initial_centers: Optional[Any] = None,
          empty_cluster: str = 'retain',
          track_history: bool = False) -> KMeansResult:
    """
    Perform K-means clustering on the data.

    Args:
        data: Point set (n_points x n_features)
        k: Number of clusters
        max_iter: Maximum number of assign/update iterations per run
        tol: Convergence threshold on the total centroid shift
        seed: Seed or RandomState for centroid initialization
        n_init: Number of seeded restarts; the run with the lowest WCSS wins
        initial_centers: Explicit starting centers (k x n_features); skips
            random initialization
        empty_cluster: Empty-cluster policy, 'retain' or 'error'
        track_history: Record a KMeansStep for every iteration

    Returns:
        KMeansResult with final centers, labels and terminal state
    """
    data = read_only(as_matrix(data, "data"))
    n_points = data.shape[0]

    if n_points == 0:
        raise InvalidInputError("Cannot cluster an empty point set")

    k = validate_k(k, n_points)

    if isinstance(max_iter, bool) or not isinstance(max_iter, (int, np.integer)) or max_iter < 1:
        raise InvalidInputError(f"max_iter must be a positive integer, got {max_iter!r}")

    if isinstance(n_init, bool) or not isinstance(n_init, (int, np.integer)) or n_init < 1:
        raise InvalidInputError(f"n_init must be a positive integer, got {n_init!r}")

    if tol < 0:
        raise InvalidInputError(f"tol must be non-negative, got {tol}")

    if empty_cluster not in EMPTY_CLUSTER_POLICIES:
        raise InvalidInputError(f"Unknown empty-cluster policy: {empty_cluster}")

    if initial_centers is not None:
        centers = as_matrix(initial_centers, "initial_centers")
        if centers.shape != (k, data.shape[1]):
            raise InvalidInputError(
                f"initial_centers must have shape {(k, data.shape[1])}, got {centers.shape}"
            )
        if n_init > 1:
            logger.debug("Explicit initial centers given, ignoring n_init")
        starts = [centers]
    else:
        rng = _random_state(seed)
        starts = [init_centers(data, k, rng) for _ in range(n_init)]

    best = None
    for start in starts:
        result = _run(data, start, max_iter, tol, empty_cluster, track_history)
        if best is None or result.wcss < best.wcss:
            best = result

    if best.state is KMeansState.MAX_ITER_EXCEEDED:
        logger.warning(f"K-means with k={k} did not converge within {max_iter} iterations")
    else:
        logger.info(f"K-means with k={k} converged after {best.iterations} iterations (WCSS={best.wcss:.4f})")

    return best


def distance_matrix(data: np.ndarray) -> np.ndarray:
    """
    Calculate the distance matrix for a set of points.

    Args:
        data: Data matrix

    Returns:
        Matrix of pairwise Euclidean distances
    """
    if data.shape[0] < 2:
        return np.zeros((data.shape[0], data.shape[0]))
    return squareform(pdist(data, metric='euclidean'))


def silhouette_samples(data: Any, labels: Any) -> np.ndarray:
    """
    Silhouette value of every point.

    For point i, a is the mean distance to the other points of its cluster
    and b is the lowest mean distance to the points of any other cluster.
    Points alone in their cluster score 0.

    Args:
        data: Data matrix
        labels: Cluster label of each point

    Returns:
        Array of silhouette values in [-1, 1]
    """
    data = as_matrix(data, "data")
    labels = np.asarray(labels)

    if labels.shape != (data.shape[0],):
        raise InvalidInputError(
            f"Expected {data.shape[0]} labels, got {labels.shape[0] if labels.ndim else 0}"
        )

    occupied = np.unique(labels)
    if len(occupied) < 2:
        raise InvalidKError("Silhouette requires at least 2 occupied clusters")

    dist_matrix = distance_matrix(data)
    masks = {label: labels == label for label in occupied}
    sizes = {label: int(np.sum(mask)) for label, mask in masks.items()}

    values = np.zeros(data.shape[0])

    for i in range(data.shape[0]):
        own = labels[i]
        if sizes[own] == 1:
            continue

        # dist_matrix[i, i] is 0, so divide by the other members only
        a = np.sum(dist_matrix[i, masks[own]]) / (sizes[own] - 1)
        b = min(np.mean(dist_matrix[i, masks[other]]) for other in occupied if other != own)

        denom = max(a, b)
        if denom > 0:
            values[i] = (b - a) / denom

    return values


def silhouette(data: Any, labels: Any) -> float:
    """
    Calculate the silhouette coefficient for a clustering.

    Args:
        data: Data matrix
        labels: Cluster label of each point

    Returns:
        Mean silhouette value (between -1 and 1)
    """
    return float(np.mean(silhouette_samples(data, labels)))


def clusters_to_dict(clusters: List[Cluster], data_indices: Optional[List[Any]] = None) -> List[Dict]:
    """
    Convert clusters to a dictionary format for serialization.

    Args:
        clusters: List of clusters
        data_indices: Optional mapping from numerical indices to original indices

    Returns:
        List of cluster dictionaries
    """
    result = []

    for cluster in clusters:
        # Map member indices if needed
        if data_indices is not None:
            members = [data_indices[idx] for idx in cluster.members]
        else:
            members = cluster.members

        cluster_dict = {
            'id': cluster.id,
            'center': cluster.center.tolist(),
            'members': members
        }
        result.append(cluster_dict)

    return result
