"""
Core data structure for labelled expression matrices.

ExpressionDataset couples the numerical expression matrix with its sample and
gene identifiers and the binary outcome label used by every downstream stage
(differential testing, discriminant analysis, classification).

Biological Context:
    Transplant biopsy cohorts are analysed patient-wise:
    - Rows = samples (one biopsy per patient)
    - Columns = genes
    - Label = rejection status (1 = rejection, 0 = no rejection)

    Keeping X and y in a single immutable object guarantees that every
    subset (train/test partitions, gene filters) stays aligned.

Engineering Design:
    - Immutable: subsetting returns new instances
    - Type-safe: NumPy arrays for data and labels, Pandas indices for IDs
    - Validated: constructor checks shape and label consistency

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from graftexpr.core.dataset import ExpressionDataset
    >>>
    >>> dataset = ExpressionDataset(
    ...     data=np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]]),
    ...     sample_ids=pd.Index(["P001", "P002", "P003"]),
    ...     gene_ids=pd.Index(["CXCL9", "GBP1"]),
    ...     labels=np.array([0, 1, 1]),
    ... )
    >>> dataset.n_positive
    2
    >>> train = dataset.select_samples(np.array([0, 1]))
"""

from __future__ import annotations

import numpy as np
import pandas as pd

__all__ = ['ExpressionDataset']


class ExpressionDataset:
    """
    Immutable container for a samples × genes matrix and its binary labels.

    Attributes:
        data: Expression matrix (samples × genes)
        sample_ids: Row identifiers (patients/biopsies)
        gene_ids: Column identifiers (gene symbols or probe IDs)
        labels: Binary outcome per sample (0/1)

    Shape Invariants:
        - data.shape[0] == len(sample_ids) == len(labels)
        - data.shape[1] == len(gene_ids)
        - labels only contains 0 and 1
    """

    def __init__(
        self,
        data: np.ndarray,
        sample_ids: pd.Index,
        gene_ids: pd.Index,
        labels: np.ndarray,
    ):
        """
        Initialize ExpressionDataset with validation.

        Args:
            data: Expression matrix (samples × genes)
            sample_ids: Row identifiers
            gene_ids: Column identifiers
            labels: Binary labels aligned with rows

        Raises:
            ValueError: If shapes are inconsistent or labels are not binary
            TypeError: If data types are incorrect
        """
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if not isinstance(sample_ids, pd.Index):
            raise TypeError(f"sample_ids must be pd.Index, got {type(sample_ids)}")
        if not isinstance(gene_ids, pd.Index):
            raise TypeError(f"gene_ids must be pd.Index, got {type(gene_ids)}")

        labels = np.asarray(labels)

        if data.ndim != 2:
            raise ValueError(f"data must be 2D, got shape {data.shape}")
        if labels.ndim != 1:
            raise ValueError(f"labels must be 1D, got shape {labels.shape}")

        n_samples, n_genes = data.shape

        if len(sample_ids) != n_samples:
            raise ValueError(
                f"sample_ids length ({len(sample_ids)}) must match data rows ({n_samples})"
            )
        if len(gene_ids) != n_genes:
            raise ValueError(
                f"gene_ids length ({len(gene_ids)}) must match data columns ({n_genes})"
            )
        if len(labels) != n_samples:
            raise ValueError(
                f"labels length ({len(labels)}) must match data rows ({n_samples})"
            )
        if not np.isin(labels, (0, 1)).all():
            raise ValueError(
                f"labels must be binary (0/1), got values {sorted(set(labels.tolist()))}"
            )

        self._data = data
        self._sample_ids = sample_ids
        self._gene_ids = gene_ids
        self._labels = labels.astype(int)

    @property
    def data(self) -> np.ndarray:
        """Expression matrix (samples × genes)."""
        return self._data

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def gene_ids(self) -> pd.Index:
        return self._gene_ids

    @property
    def labels(self) -> np.ndarray:
        """Binary outcome per sample (1 = rejection)."""
        return self._labels

    @property
    def shape(self) -> tuple[int, int]:
        """Matrix dimensions (n_samples, n_genes)."""
        return self._data.shape

    @property
    def n_samples(self) -> int:
        return self._data.shape[0]

    @property
    def n_genes(self) -> int:
        return self._data.shape[1]

    @property
    def n_positive(self) -> int:
        """Number of samples labelled 1."""
        return int(self._labels.sum())

    @property
    def n_negative(self) -> int:
        """Number of samples labelled 0."""
        return self.n_samples - self.n_positive

    def select_samples(self, selector: np.ndarray | pd.Series) -> ExpressionDataset:
        """
        Subset dataset by samples (rows).

        Args:
            selector: Boolean mask of length n_samples or an integer index array.
                If Series, uses values and ignores index.

        Returns:
            New ExpressionDataset with selected samples

        Raises:
            ValueError: If a boolean mask has the wrong length

        Examples:
            >>> rejection_only = dataset.select_samples(dataset.labels == 1)
            >>> train = dataset.select_samples(partition.train)
        """
        selector = self._resolve_selector(selector, self.n_samples, "n_samples")
        return ExpressionDataset(
            data=self._data[selector, :],
            sample_ids=self._sample_ids[selector],
            gene_ids=self._gene_ids,
            labels=self._labels[selector],
        )

    def select_genes(self, selector: np.ndarray | pd.Series) -> ExpressionDataset:
        """
        Subset dataset by genes (columns).

        Args:
            selector: Boolean mask of length n_genes or an integer index array.

        Returns:
            New ExpressionDataset with selected genes
        """
        selector = self._resolve_selector(selector, self.n_genes, "n_genes")
        return ExpressionDataset(
            data=self._data[:, selector],
            sample_ids=self._sample_ids,
            gene_ids=self._gene_ids[selector],
            labels=self._labels,
        )

    def with_data(self, data: np.ndarray, gene_ids: pd.Index | None = None) -> ExpressionDataset:
        """Return a new dataset with replaced values, keeping samples and labels."""
        return ExpressionDataset(
            data=data,
            sample_ids=self._sample_ids,
            gene_ids=self._gene_ids if gene_ids is None else gene_ids,
            labels=self._labels,
        )

    def to_dataframe(self) -> pd.DataFrame:
        """Expression matrix as a DataFrame indexed by sample ID."""
        return pd.DataFrame(self._data, index=self._sample_ids, columns=self._gene_ids)

    @staticmethod
    def _resolve_selector(selector, length: int, name: str) -> np.ndarray:
        if isinstance(selector, pd.Series):
            selector = selector.values
        selector = np.asarray(selector)
        if selector.dtype == bool and len(selector) != length:
            raise ValueError(
                f"mask length ({len(selector)}) must match {name} ({length})"
            )
        return selector

    def __repr__(self) -> str:
        return (
            f"ExpressionDataset(n_samples={self.n_samples}, n_genes={self.n_genes}, "
            f"n_positive={self.n_positive})"
        )
