"""Configuration management for SpliceForge.

This module handles loading, validating, and providing access to
SpliceForge configuration settings. Configuration can come from:
- Default values
- YAML configuration files
- Command-line arguments

Example:
    >>> from spliceforge.config import Config
    >>> config = Config.load("spliceforge.yaml")
    >>> config.regulation.min_probability
    0.9
"""

from pathlib import Path
from typing import Any

import attrs
import yaml

# =============================================================================
# Default Configuration Values
# =============================================================================

# Regulation calling defaults
DEFAULT_MIN_PROBABILITY = 0.9
DEFAULT_MIN_ABS_DPSI = 0.1
DEFAULT_MIN_DPSI_FRACTION = 0.5
DEFAULT_OPPOSITE_SIGN_EXEMPT = ("multi_exon_spanning",)

# Alignment scoring defaults (identity scoring with a harsh mismatch penalty)
DEFAULT_MATCH_SCORE = 5.0
DEFAULT_MISMATCH_SCORE = -20.0
DEFAULT_OPEN_GAP_SCORE = -10.0
DEFAULT_EXTEND_GAP_SCORE = -1.0

# Annotation defaults
DEFAULT_GENE_TYPES = ("protein_coding",)

# Parallel processing defaults
DEFAULT_MAX_WORKERS = 1
DEFAULT_BACKEND = "serial"

TRANSLATION_MODES = ("junction", "exon")


# =============================================================================
# Configuration Classes
# =============================================================================


def _fraction(instance: Any, attribute: attrs.Attribute, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{attribute.name} must be within [0, 1], got {value}")


def _event_class_names(instance: Any, attribute: attrs.Attribute, value: tuple[str, ...]) -> None:
    from spliceforge.core.models import EventClass

    known = {event_class.value for event_class in EventClass}
    unknown = [name for name in value if name.strip().lower() not in known]
    if unknown:
        raise ValueError(f"Unknown event classes in {attribute.name}: {', '.join(unknown)}")


@attrs.define
class RegulationConfig:
    """Configuration for regulation calling.

    Attributes:
        min_probability: Minimum probability of change per junction.
        min_abs_dpsi: Minimum absolute dPSI per junction.
        min_dpsi_fraction: Minimum |dPSI| relative to the group maximum.
        opposite_sign_exempt: Event classes not required to show
            opposite dPSI signs.
    """

    min_probability: float = attrs.field(default=DEFAULT_MIN_PROBABILITY, validator=_fraction)
    min_abs_dpsi: float = attrs.field(default=DEFAULT_MIN_ABS_DPSI, validator=_fraction)
    min_dpsi_fraction: float = attrs.field(
        default=DEFAULT_MIN_DPSI_FRACTION, validator=_fraction
    )
    opposite_sign_exempt: tuple[str, ...] = attrs.field(
        default=DEFAULT_OPPOSITE_SIGN_EXEMPT, converter=tuple, validator=_event_class_names
    )


@attrs.define
class TranslationConfig:
    """Configuration for peptide translation.

    Attributes:
        mode: "junction" translates the upstream exon joined to E2,
            "exon" translates the upstream exon alone.
    """

    mode: str = attrs.field(default="junction", validator=attrs.validators.in_(TRANSLATION_MODES))


@attrs.define
class AlignmentConfig:
    """Configuration for peptide-to-protein alignment.

    Attributes:
        match_score: Score for identical residues.
        mismatch_score: Score for any non-identical pair.
        open_gap_score: Score for opening a gap.
        extend_gap_score: Score for extending a gap.
    """

    match_score: float = DEFAULT_MATCH_SCORE
    mismatch_score: float = DEFAULT_MISMATCH_SCORE
    open_gap_score: float = DEFAULT_OPEN_GAP_SCORE
    extend_gap_score: float = DEFAULT_EXTEND_GAP_SCORE

    def __attrs_post_init__(self) -> None:
        if self.match_score <= 0:
            raise ValueError("match_score must be positive")
        if self.mismatch_score >= 0:
            raise ValueError("mismatch_score must be negative")


@attrs.define
class AnnotationConfig:
    """Configuration for the reference annotation.

    Attributes:
        gene_types: Gene biotypes kept in the coding-exon catalogue.
    """

    gene_types: tuple[str, ...] = attrs.field(default=DEFAULT_GENE_TYPES, converter=tuple)


@attrs.define
class ParallelConfig:
    """Configuration for parallel processing.

    Attributes:
        max_workers: Maximum number of parallel workers, 0 for one per CPU.
        backend: Execution backend (serial, threads, processes).
    """

    max_workers: int = DEFAULT_MAX_WORKERS
    backend: str = attrs.field(
        default=DEFAULT_BACKEND,
        validator=attrs.validators.in_(("serial", "threads", "processes")),
    )


@attrs.define
class Config:
    """Main configuration container for SpliceForge.

    Attributes:
        regulation: Regulation calling configuration.
        translation: Translation configuration.
        alignment: Alignment scoring configuration.
        annotation: Annotation filtering configuration.
        parallel: Parallel processing configuration.
    """

    regulation: RegulationConfig = attrs.Factory(RegulationConfig)
    translation: TranslationConfig = attrs.Factory(TranslationConfig)
    alignment: AlignmentConfig = attrs.Factory(AlignmentConfig)
    annotation: AnnotationConfig = attrs.Factory(AnnotationConfig)
    parallel: ParallelConfig = attrs.Factory(ParallelConfig)

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from a YAML file.

        Args:
            path: Path to configuration file. If None, returns default
                configuration.

        Returns:
            Loaded configuration object.

        Raises:
            FileNotFoundError: If configuration file doesn't exist.
            ValueError: If configuration file is invalid.
        """
        if path is None:
            return cls()

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid configuration file {path}: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"Invalid configuration file {path}: expected a mapping of sections")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        """Build a configuration from nested dictionaries.

        Args:
            data: Mapping of section name to section settings. An empty
                section keeps its defaults.

        Returns:
            Configuration object.

        Raises:
            ValueError: On unknown sections or keys.
        """
        kwargs = {}
        for name, values in data.items():
            if name not in SECTION_CLASSES:
                raise ValueError(f"Unknown configuration section: {name}")
            values = values or {}
            if not isinstance(values, dict):
                raise ValueError(f"Section {name} must be a mapping")
            section_cls = SECTION_CLASSES[name]
            known = {field.name for field in attrs.fields(section_cls)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(
                    f"Unknown keys in [{name}]: {', '.join(sorted(unknown))}"
                )
            kwargs[name] = section_cls(**values)

        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to plain nested dicts and lists.

        Returns:
            Dictionary representation of configuration.
        """
        return attrs.asdict(self, value_serializer=_plain_value)

    def save(self, path: Path | str) -> None:
        """Save configuration to a YAML file.

        Args:
            path: Path to save configuration file.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)


SECTION_CLASSES: dict[str, type] = {
    "regulation": RegulationConfig,
    "translation": TranslationConfig,
    "alignment": AlignmentConfig,
    "annotation": AnnotationConfig,
    "parallel": ParallelConfig,
}


def _plain_value(instance: Any, field: attrs.Attribute, value: Any) -> Any:
    # yaml.safe_dump has no representer for tuples
    return list(value) if isinstance(value, tuple) else value
