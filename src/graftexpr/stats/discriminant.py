"""
Fisher linear discriminant for two labelled groups.

Finds the direction a maximising the between- to within-group scatter ratio

    J(a) = aᵀ B a / aᵀ W a,   subject to aᵀ W a = 1,

which is the leading eigenvector of the generalized symmetric eigenproblem
B a = λ W a. No iteration is involved.

With p >> n the within-group scatter W of the full gene matrix is singular,
so the discriminant is normally fitted on the leading principal-component
scores (discriminant_on_components) and mapped back to gene space.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import linalg

from graftexpr.stats.decomposition import SVDResult, project_samples

__all__ = [
    'DiscriminantResult',
    'scatter_matrices',
    'fisher_discriminant',
    'discriminant_on_components',
]


@dataclass(frozen=True)
class DiscriminantResult:
    """
    Fitted Fisher discriminant.

    Attributes:
        direction: Discriminant vector a (aᵀ W a = 1)
        eigenvalue: Attained criterion J(a)
        scores: Projection X a for every sample
        group_means: Mean projected score per label (0, 1)
        gene_direction: Direction mapped to gene space when fitted on
            component scores, else None
    """
    direction: NDArray[np.float64]
    eigenvalue: float
    scores: NDArray[np.float64]
    group_means: tuple[float, float]
    gene_direction: NDArray[np.float64] | None = None

    @property
    def separation(self) -> float:
        """Difference of projected group means (group 1 minus group 0)."""
        return self.group_means[1] - self.group_means[0]


def scatter_matrices(
    data: NDArray[np.float64],
    labels: NDArray,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Between-group (B) and within-group (W) scatter matrices.

    B = Σ_g n_g (m_g - m)(m_g - m)ᵀ,  W = Σ_g Σ_{i∈g} (x_i - m_g)(x_i - m_g)ᵀ
    """
    labels = np.asarray(labels)
    overall_mean = data.mean(axis=0)
    p = data.shape[1]

    between = np.zeros((p, p))
    within = np.zeros((p, p))
    for group in (0, 1):
        members = data[labels == group]
        if len(members) == 0:
            raise ValueError(f"No samples with label {group}")
        group_mean = members.mean(axis=0)
        diff = (group_mean - overall_mean)[:, None]
        between += len(members) * (diff @ diff.T)
        centred = members - group_mean
        within += centred.T @ centred

    return between, within


def fisher_discriminant(
    data: NDArray[np.float64],
    labels: NDArray,
    shrinkage: float = 0.0,
) -> DiscriminantResult:
    """
    Closed-form Fisher discriminant direction.

    Args:
        data: Samples × features matrix
        labels: Binary labels (0/1)
        shrinkage: Optional ridge added to W as shrinkage * trace(W)/p * I.
            At the default 0, a singular W raises numpy.linalg.LinAlgError.

    Returns:
        DiscriminantResult oriented so group 1 projects higher than group 0
    """
    if shrinkage < 0:
        raise ValueError(f"shrinkage must be non-negative, got {shrinkage}")

    labels = np.asarray(labels)
    between, within = scatter_matrices(data, labels)

    if shrinkage > 0:
        p = within.shape[0]
        within = within + shrinkage * np.trace(within) / p * np.eye(p)

    # eigh returns eigenvalues ascending and eigenvectors with aᵀ W a = 1
    eigenvalues, eigenvectors = linalg.eigh(between, within)
    direction = eigenvectors[:, -1]

    scores = data @ direction
    mean0 = float(scores[labels == 0].mean())
    mean1 = float(scores[labels == 1].mean())
    if mean1 < mean0:
        direction = -direction
        scores = -scores
        mean0, mean1 = -mean0, -mean1

    return DiscriminantResult(
        direction=direction,
        eigenvalue=float(eigenvalues[-1]),
        scores=scores,
        group_means=(mean0, mean1),
    )


def discriminant_on_components(
    svd: SVDResult,
    labels: NDArray,
    k: int,
    shrinkage: float = 0.0,
) -> DiscriminantResult:
    """
    Fisher discriminant on the first k principal-component scores.

    Scores are X V_k, so the gene-space direction is V_k a and
    X (V_k a) reproduces the projected scores.

    Args:
        svd: Decomposition of the standardized matrix
        labels: Binary labels aligned with svd.u rows
        k: Number of components
        shrinkage: See fisher_discriminant()
    """
    scores = project_samples(svd, k)
    result = fisher_discriminant(scores, labels, shrinkage=shrinkage)
    return DiscriminantResult(
        direction=result.direction,
        eigenvalue=result.eigenvalue,
        scores=result.scores,
        group_means=result.group_means,
        gene_direction=svd.v[:, :k] @ result.direction,
    )
