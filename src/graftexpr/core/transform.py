"""
Base transformation framework for immutable dataset operations.

Preprocessing steps (gene filtering, scaling) are expressed as Transform
subclasses: pure functions that take an ExpressionDataset and return a new
one, never modifying their input.

Engineering Design:
    - No side effects: inputs are never modified
    - Deterministic: same input + params → same output
    - Auditable: parameters are kept on the instance and appear in repr()

Examples:
    >>> from graftexpr.core.transform import Transform
    >>>
    >>> class Log2Transform(Transform):
    ...     def __init__(self, pseudocount: float = 1.0):
    ...         super().__init__(name="Log2Transform", params={"pseudocount": pseudocount})
    ...         self.pseudocount = pseudocount
    ...
    ...     def apply(self, dataset):
    ...         import numpy as np
    ...         return dataset.with_data(np.log2(dataset.data + self.pseudocount))
    >>>
    >>> logged = Log2Transform().apply(dataset)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from graftexpr.core.dataset import ExpressionDataset

__all__ = ['Transform']


class Transform(ABC):
    """
    Abstract base class for dataset transformations.

    Attributes:
        name: Human-readable transformation name (e.g., "Standardize")
        params: Parameters used for this transformation (JSON-serializable)
        timestamp: When this transform instance was created
    """

    def __init__(self, name: str, params: dict[str, Any]) -> None:
        self.name = name
        self.params = params
        self.timestamp = datetime.now()

    @abstractmethod
    def apply(self, dataset: ExpressionDataset) -> ExpressionDataset:
        """
        Execute transformation and return a new dataset.

        Args:
            dataset: Input dataset (left unchanged)

        Returns:
            New ExpressionDataset with the transformation applied

        Raises:
            ValueError: If the transformation cannot be applied (see validate())
        """
        pass

    def validate(self, dataset: ExpressionDataset) -> list[str]:
        """
        Check preconditions before applying the transformation.

        Subclasses should override and call super().validate() first.

        Returns:
            List of error messages (empty list = valid)
        """
        errors: list[str] = []

        if dataset.data.size == 0:
            errors.append("Cannot process empty dataset")

        return errors

    def __repr__(self) -> str:
        """
        String representation for logging, e.g. "Standardize(ddof=1, drop_constant=True)".
        """
        params_str = ", ".join(f"{k}={v}" for k, v in self.params.items())
        return f"{self.name}({params_str})"
