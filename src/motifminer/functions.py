import numpy as np
from numba import njit


@njit(cache=True)
def mean_pairwise_distance(points):
    """Mean Euclidean distance over all point pairs (0.0 for a single point)."""
    n = points.shape[0]
    if n < 2:
        return 0.0
    total = 0.0
    count = 0
    for i in range(n):
        for j in range(i + 1, n):
            d = 0.0
            for k in range(points.shape[1]):
                diff = points[i, k] - points[j, k]
                d += diff * diff
            total += np.sqrt(d)
            count += 1
    return total / count


@njit(cache=True)
def mean_nearest_neighbor_distance(points):
    """Mean distance of every point to its closest other point (0.0 for a single point)."""
    n = points.shape[0]
    if n < 2:
        return 0.0
    total = 0.0
    for i in range(n):
        best = np.inf
        for j in range(n):
            if i == j:
                continue
            d = 0.0
            for k in range(points.shape[1]):
                diff = points[i, k] - points[j, k]
                d += diff * diff
            if d < best:
                best = d
        total += np.sqrt(best)
    return total / n


@njit(cache=True)
def adjacency_matrix(points, cutoff):
    """Boolean matrix of point pairs closer than ``cutoff`` (diagonal is False)."""
    n = points.shape[0]
    result = np.zeros((n, n), dtype=np.bool_)
    squared_cutoff = cutoff * cutoff
    for i in range(n):
        for j in range(i + 1, n):
            d = 0.0
            for k in range(points.shape[1]):
                diff = points[i, k] - points[j, k]
                d += diff * diff
            if d <= squared_cutoff:
                result[i, j] = True
                result[j, i] = True
    return result
