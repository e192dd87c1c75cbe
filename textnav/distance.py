"""
Edit distance helpers shared by the local checker and the alignment engine.
"""

from typing import Sequence

import numpy as np


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance (insert, delete, substitute; all cost 1)."""
    m, n = len(a), len(b)
    if m == 0:
        return n
    if n == 0:
        return m

    dp = np.zeros((m + 1, n + 1), dtype=np.int32)
    dp[:, 0] = np.arange(m + 1)
    dp[0, :] = np.arange(n + 1)

    for i in range(1, m + 1):
        for j in range(1, n + 1):
            if a[i - 1] == b[j - 1]:
                dp[i, j] = dp[i - 1, j - 1]
            else:
                dp[i, j] = min(dp[i - 1, j], dp[i, j - 1], dp[i - 1, j - 1]) + 1

    return int(dp[m, n])


def normalized_edit_distance(a: str, b: str) -> float:
    """Edit distance divided by the longer length (0.0 for two empty strings)."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 0.0
    return edit_distance(a, b) / longest


def suffix_distances(a: Sequence, b: Sequence) -> np.ndarray:
    """
    Edit distances between every pair of suffixes of two sequences.

    dp[i, j] is the distance between a[i:] and b[j:], so dp[0, 0] is the
    full distance. Elements are compared with ==, which makes this work for
    word lists as well as strings.
    """
    m, n = len(a), len(b)
    dp = np.zeros((m + 1, n + 1), dtype=np.int32)
    dp[:, n] = np.arange(m, -1, -1)
    dp[m, :] = np.arange(n, -1, -1)

    for i in range(m - 1, -1, -1):
        for j in range(n - 1, -1, -1):
            if a[i] == b[j]:
                dp[i, j] = dp[i + 1, j + 1]
            else:
                dp[i, j] = min(dp[i + 1, j], dp[i, j + 1], dp[i + 1, j + 1]) + 1

    return dp
