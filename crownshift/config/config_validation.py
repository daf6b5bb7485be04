# CrownShift/crownshift/config/config_validation.py
"""
Configuration schema validation for the CrownShift system.
Uses pydantic for robust validation of configuration files.
"""

import json
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union
from pydantic import BaseModel, Field, validator, ValidationError
import logging

from crownshift.config import constants

logger = logging.getLogger(__name__)


VARIANTS = ("classic", "improved")
CONVERGENCE_TESTS = ("euclidean", "per_axis", "per_axis_legacy")
DEGENERATE_POLICIES = ("propagate", "raise")
NEIGHBOR_SEARCHES = ("brute_force", "kd_tree")


class MeanShiftConfig(BaseModel):
    """Schema for the adaptive mean shift parameters."""
    crown_diameter_to_tree_height: float = Field(gt=0, description="Ratio of crown diameter to tree height")
    crown_height_to_tree_height: float = Field(gt=0, description="Ratio of crown height to tree height")
    max_iterations: int = Field(ge=1, default=constants.DEFAULT_MAX_ITERATIONS, description="Maximum kernel moves per point")
    uniform_kernel: bool = Field(default=False, description="Turn off distance weighting (classic only)")
    variant: str = Field(default="classic", description="Cylinder placement convention")
    convergence: str = Field(default="euclidean", description="Stopping rule")
    epsilon: float = Field(gt=0, default=constants.DEFAULT_EPSILON, description="Convergence tolerance")
    degenerate: str = Field(default="propagate", description="Zero weight sum policy")
    neighbor_search: str = Field(default="brute_force", description="Spatial query used for the scan")

    @validator('variant', 'convergence', 'degenerate', 'neighbor_search', pre=True)
    def normalize_choice(cls, v):
        """Accept 'Classic', 'per-axis' and similar spellings."""
        if isinstance(v, str):
            return v.strip().lower().replace('-', '_').replace(' ', '_')
        return v

    @validator('variant')
    def validate_variant(cls, v):
        if v not in VARIANTS:
            raise ValueError(f"variant must be one of {VARIANTS}")
        return v

    @validator('convergence')
    def validate_convergence(cls, v):
        if v not in CONVERGENCE_TESTS:
            raise ValueError(f"convergence must be one of {CONVERGENCE_TESTS}")
        return v

    @validator('degenerate')
    def validate_degenerate(cls, v):
        if v not in DEGENERATE_POLICIES:
            raise ValueError(f"degenerate must be one of {DEGENERATE_POLICIES}")
        return v

    @validator('neighbor_search')
    def validate_neighbor_search(cls, v):
        if v not in NEIGHBOR_SEARCHES:
            raise ValueError(f"neighbor_search must be one of {NEIGHBOR_SEARCHES}")
        return v

    def uniform_kernel_supported(self):
        """Validate that the uniform kernel is only combined with the classic variant."""
        if self.uniform_kernel and self.variant != "classic":
            raise ValueError("uniform_kernel is only supported by the classic variant")
        return self


class TilingConfig(BaseModel):
    """Schema for splitting a large cloud into buffered tiles."""
    core_width: Optional[float] = Field(default=None, gt=0, description="Tile core width; None disables tiling")
    buffer_width: float = Field(ge=0, default=constants.DEFAULT_BUFFER_WIDTH)
    min_height: float = Field(ge=0, default=constants.DEFAULT_MIN_HEIGHT, description="Drop points below this height before tiling")


class CrownShiftConfig(BaseModel):
    """Complete schema for a CrownShift run (crownshift.yaml / crownshift.json)."""
    mean_shift: MeanShiftConfig
    tiling: TilingConfig = Field(default_factory=TilingConfig)


class ConfigValidator:
    """
    Configuration validator that handles loading and validating config files.
    """

    @staticmethod
    def validate_config(config_data: Dict[str, Any]) -> CrownShiftConfig:
        """
        Validate a complete CrownShift configuration.

        Args:
            config_data: Configuration dictionary

        Returns:
            Validated configuration object

        Raises:
            ValidationError: If validation fails
        """
        try:
            config = CrownShiftConfig(**config_data)
            config.mean_shift.uniform_kernel_supported()
            return config
        except ValueError as e:
            # pydantic's ValidationError is a ValueError too
            logger.error(f"CrownShift config validation failed: {e}")
            raise

    @staticmethod
    def load_and_validate_json(file_path: Union[str, Path], schema_class: type = CrownShiftConfig) -> BaseModel:
        """
        Load and validate a JSON configuration file.

        Args:
            file_path: Path to JSON file
            schema_class: Pydantic model class for validation

        Returns:
            Validated configuration object
        """
        try:
            with open(file_path, 'r') as f:
                config_data = json.load(f)
            return ConfigValidator._validate(config_data, schema_class)

        except FileNotFoundError:
            logger.error(f"Configuration file not found: {file_path}")
            raise
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {file_path}: {e}")
            raise
        except ValidationError as e:
            logger.error(f"Configuration validation failed for {file_path}: {e}")
            raise
        except ValueError as e:
            logger.error(f"Unsupported parameter combination in {file_path}: {e}")
            raise

    @staticmethod
    def load_and_validate_yaml(file_path: Union[str, Path], schema_class: type = CrownShiftConfig) -> BaseModel:
        """
        Load and validate a YAML configuration file.

        Args:
            file_path: Path to YAML file
            schema_class: Pydantic model class for validation

        Returns:
            Validated configuration object
        """
        try:
            with open(file_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
            return ConfigValidator._validate(config_data, schema_class)

        except FileNotFoundError:
            logger.error(f"Configuration file not found: {file_path}")
            raise
        except yaml.YAMLError as e:
            logger.error(f"Invalid YAML in {file_path}: {e}")
            raise
        except ValidationError as e:
            logger.error(f"Configuration validation failed for {file_path}: {e}")
            raise
        except ValueError as e:
            logger.error(f"Unsupported parameter combination in {file_path}: {e}")
            raise

    @staticmethod
    def _validate(config_data: Dict[str, Any], schema_class: type) -> BaseModel:
        if schema_class == CrownShiftConfig:
            return ConfigValidator.validate_config(config_data)
        config = schema_class(**config_data)
        if schema_class == MeanShiftConfig:
            config.uniform_kernel_supported()
        return config

    @staticmethod
    def create_default_config() -> Dict[str, Any]:
        """Create a default configuration with ratios typical for temperate forests."""
        return {
            "mean_shift": {
                "crown_diameter_to_tree_height": 0.6,
                "crown_height_to_tree_height": 0.5,
                "max_iterations": constants.DEFAULT_MAX_ITERATIONS,
                "uniform_kernel": False,
                "variant": "classic",
                "convergence": "euclidean",
                "epsilon": constants.DEFAULT_EPSILON,
                "degenerate": "propagate",
                "neighbor_search": "brute_force",
            },
            "tiling": {
                "core_width": None,
                "buffer_width": constants.DEFAULT_BUFFER_WIDTH,
                "min_height": constants.DEFAULT_MIN_HEIGHT,
            },
        }


def validate_config_file(file_path: str, config_type: str = "auto") -> BaseModel:
    """
    Convenience function to validate a configuration file.

    Args:
        file_path: Path to configuration file
        config_type: Format ("json", "yaml", or "auto" to detect from the extension)

    Returns:
        Validated configuration object
    """
    path = Path(file_path)

    # Auto-detect config type from extension
    if config_type == "auto":
        if path.suffix == ".json":
            config_type = "json"
        elif path.suffix in [".yaml", ".yml"]:
            config_type = "yaml"
        else:
            raise ValueError(f"Cannot determine config type for {file_path}")

    if config_type == "json":
        return ConfigValidator.load_and_validate_json(file_path, CrownShiftConfig)
    elif config_type == "yaml":
        return ConfigValidator.load_and_validate_yaml(file_path, CrownShiftConfig)
    else:
        raise ValueError(f"Unknown config type: {config_type}")
