"""
Configuration management for point-catalog.

Provides a typed pydantic model and YAML loader with sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Literal, List, Any, Dict, Union

from pydantic import BaseModel, Field, ValidationError
import yaml

from ..preprocessing.catalog import CatalogOptions


# -----------------------
# Typed config structures
# -----------------------


class CatalogConfig(BaseModel):
    chunk_size: float = Field(default=0.0, ge=0.0, description="Chunk side length (0 = one chunk per file)")
    buffer: float = Field(default=30.0, ge=0.0, description="Buffer width around each chunk")
    n_workers: Optional[int] = Field(default=None, description="Number of worker processes (None = auto-detect: cpu_count - 1)")
    select: Union[Literal["*"], List[str], None] = Field(
        default=None,
        description="Extra attributes to read ('*' = all, null = classification only)",
    )
    classification_filter: Optional[List[int]] = Field(default=None)
    output_template: Optional[str] = Field(default=None, description="Output path template, e.g. out/tile_{xleft}_{ybottom}")
    on_error: Literal["continue", "abort"] = Field(
        default="continue",
        description="'continue' reports every failed chunk at the end; 'abort' stops scheduling after the first failure",
    )
    chunk_points: int = Field(default=1_000_000, gt=0, description="Points per laspy streaming chunk")

    def to_options(self) -> CatalogOptions:
        return CatalogOptions(
            chunk_size=self.chunk_size,
            buffer=self.buffer,
            n_workers=self.n_workers,
            select=self.select,
            classification_filter=self.classification_filter,
            output_template=self.output_template,
            on_error=self.on_error,
            chunk_points=self.chunk_points,
        )


class KNNIDWConfig(BaseModel):
    k: int = Field(default=10, ge=1)
    p: float = Field(default=2.0, ge=0.0)


class VariogramConfig(BaseModel):
    psill: float = Field(default=0.59)
    model: Literal["spherical", "exponential", "gaussian", "hole-effect"] = Field(default="spherical")
    range: float = Field(default=874.0, gt=0.0)
    nugget: float = Field(default=0.0, ge=0.0)


class KrigingConfig(BaseModel):
    k: int = Field(default=10, ge=1)
    model: VariogramConfig = Field(default_factory=VariogramConfig)
    verbose: bool = Field(default=False, description="Let the kriging solver log its progress at INFO")


class InterpolationConfig(BaseModel):
    method: Literal["tin", "knnidw", "kriging"] = Field(default="tin")
    knnidw: KNNIDWConfig = Field(default_factory=KNNIDWConfig)
    kriging: KrigingConfig = Field(default_factory=KrigingConfig)
    n_jobs: Optional[int] = Field(default=None, description="Threads for neighbour searches")


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    file: Optional[str] = Field(default=None)


class AppConfig(BaseModel):
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    interpolation: InterpolationConfig = Field(default_factory=InterpolationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# -----------------------
# Loader
# -----------------------


def _project_root() -> Path:
    """
    Resolve the repository root directory.

    File is at: repo_root/src/point_catalog/utils/config.py
    """
    return Path(__file__).resolve().parents[3]


def load_config(path: Optional[str | Path] = None, *, allow_missing: bool = True) -> AppConfig:
    """
    Load configuration from YAML into a typed AppConfig.

    Search order when path is None:
    1) repo_root/config/default.yaml
    2) if missing and allow_missing=True: return default AppConfig()

    Args:
        path: Explicit YAML file path.
        allow_missing: If True, returns defaults when file missing; otherwise raises.

    Returns:
        AppConfig instance
    """
    cfg_path: Path
    if path is None:
        cfg_path = _project_root() / "config" / "default.yaml"
    else:
        cfg_path = Path(path)

    if not cfg_path.exists():
        if allow_missing:
            return AppConfig()
        raise FileNotFoundError(f"Config file not found: {cfg_path}")

    with cfg_path.open("r", encoding="utf-8") as f:
        raw: Dict[str, Any] = yaml.safe_load(f) or {}

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        # Re-raise with context to help users fix the YAML
        raise ValueError(f"Invalid configuration in {cfg_path}: {e}")
