"""
Analysis configuration.

AnalysisConfig groups the settings of every pipeline stage into one
dataclass tree. It is built from defaults, from a nested dictionary
(config_from_dict) or from parsed CLI arguments (graftexpr.cli.config).
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class LoaderConfig:
    """Input table layout."""
    id_column: Optional[str] = None
    label_column: Optional[str] = None
    delimiter: Optional[str] = None
    positive_label: Optional[str] = None


@dataclass
class ExploreConfig:
    """SVD and discriminant settings."""
    n_components: int = 10
    discriminant_components: int = 10
    variance_threshold: float = 0.9
    n_top_loadings: int = 20


@dataclass
class TestingConfig:
    """Differential testing and multiple-testing settings."""
    fdr_method: str = "BH"
    q_threshold: float = 0.10
    fdr_threshold: float = 0.10
    nulltype: str = "mle"
    bins: int = 120
    spline_df: int = 7


@dataclass
class ModelConfig:
    """Classifier training and evaluation settings."""
    train_fraction: float = 0.7
    n_folds: int = 4
    seed: int = 0
    max_components: int = 30
    n_lambdas: int = 50
    lambda_min_ratio: float = 0.01
    threshold_method: str = "youden"
    min_sensitivity: float = 0.9


@dataclass
class AnalysisConfig:
    """
    Complete configuration for an analysis run.

    Mirrors the CLI argument structure: every field of a section is also a
    CLI flag of the same name (underscores become dashes).
    """
    input: Optional[Path] = None
    output: Optional[Path] = None
    loader: LoaderConfig = field(default_factory=LoaderConfig)
    explore: ExploreConfig = field(default_factory=ExploreConfig)
    testing: TestingConfig = field(default_factory=TestingConfig)
    model: ModelConfig = field(default_factory=ModelConfig)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable representation (paths as strings)."""
        data = asdict(self)
        data['input'] = str(self.input) if self.input is not None else None
        data['output'] = str(self.output) if self.output is not None else None
        return data


SECTIONS = {
    'loader': LoaderConfig,
    'explore': ExploreConfig,
    'testing': TestingConfig,
    'model': ModelConfig,
}


def config_from_dict(config: Dict[str, Any]) -> AnalysisConfig:
    """
    Build an AnalysisConfig from a (possibly partial) nested dictionary.

    Raises:
        ValueError: On unknown sections or keys
    """
    unknown_top = set(config) - {'input', 'output'} - set(SECTIONS)
    if unknown_top:
        raise ValueError(f"Unknown config keys: {sorted(unknown_top)}")

    sections = {}
    for name, cls in SECTIONS.items():
        values = config.get(name) or {}
        if not isinstance(values, dict):
            raise ValueError(f"Config section '{name}' must be a mapping")
        allowed = {f.name for f in fields(cls)}
        unknown = set(values) - allowed
        if unknown:
            raise ValueError(f"Unknown keys in config section '{name}': {sorted(unknown)}")
        sections[name] = cls(**values)

    return AnalysisConfig(
        input=Path(config['input']) if config.get('input') else None,
        output=Path(config['output']) if config.get('output') else None,
        **sections,
    )
