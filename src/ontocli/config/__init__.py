"""Configuration package for the ontology pipeline."""

from .pipeline_config import (
    ExportConfig,
    GeneratorConfig,
    ParserConfig,
    PipelineConfig,
    QueryConfig,
    StorageBackendType,
    StorageConfig,
    get_pipeline_config,
    reload_config,
)

__all__ = [
    "ExportConfig",
    "GeneratorConfig",
    "ParserConfig",
    "PipelineConfig",
    "QueryConfig",
    "StorageBackendType",
    "StorageConfig",
    "get_pipeline_config",
    "reload_config",
]
