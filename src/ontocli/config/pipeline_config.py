"""
Pipeline Configuration

Loads and validates configuration from config/ontocli.yaml.
Provides typed models for the parser, the query executor, the storage
backend, the code generator and the exporter.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


class StorageBackendType(str, Enum):
    """Storage backend implementation type."""
    MEMORY = "memory"   # Indexed in-process store
    RDFLIB = "rdflib"   # rdflib.Graph-backed store


@dataclass
class ParserConfig:
    """Turtle parser configuration."""
    namespace_capacity: int = 32
    base_iri: Optional[str] = None


@dataclass
class QueryConfig:
    """Query executor configuration."""
    timeout_seconds: float = 30.0
    default_format: str = "json"


@dataclass
class StorageConfig:
    """Storage backend configuration."""
    backend: StorageBackendType = StorageBackendType.MEMORY


@dataclass
class GeneratorConfig:
    """Code generator configuration."""
    cli_name: str = "cli"
    version: str = "0.1.0"
    flags: List[str] = field(default_factory=list)


@dataclass
class ExportConfig:
    """Ontology exporter configuration."""
    base_iri: str = "https://example.org/cli#"
    prefix: str = "cli"
    format: str = "turtle"


@dataclass
class PipelineConfig:
    """Complete pipeline configuration."""
    parser: ParserConfig = field(default_factory=ParserConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        """Create config from dictionary (parsed YAML)."""
        parser_data = data.get("parser") or {}
        parser = ParserConfig(
            namespace_capacity=int(parser_data.get("namespace_capacity", 32)),
            base_iri=parser_data.get("base_iri"),
        )

        query_data = data.get("query") or {}
        query = QueryConfig(
            timeout_seconds=float(query_data.get("timeout_seconds", 30.0)),
            default_format=query_data.get("default_format", "json"),
        )

        storage_data = data.get("storage") or {}
        storage = StorageConfig(
            backend=StorageBackendType(storage_data.get("backend", "memory"))
        )

        generator_data = data.get("generator") or {}
        generator = GeneratorConfig(
            cli_name=generator_data.get("cli_name", "cli"),
            version=str(generator_data.get("version", "0.1.0")),
            flags=_name_list(generator_data.get("flags")),
        )

        export_data = data.get("export") or {}
        export = ExportConfig(**export_data) if export_data else ExportConfig()

        return cls(
            parser=parser,
            query=query,
            storage=storage,
            generator=generator,
            export=export,
        )

    @classmethod
    def from_yaml(cls, path: Optional[str] = None) -> "PipelineConfig":
        """Load config from YAML file."""
        if path is None:
            path = os.getenv("ONTOCLI_CONFIG_PATH", "config/ontocli.yaml")

        config_path = Path(path)
        if not config_path.is_absolute():
            config_path = Path.cwd() / path

        if not config_path.exists():
            # Missing file means defaults
            return cls()

        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """
        Create config from environment variables.

        Environment variables override YAML config.
        """
        config = cls.from_yaml()

        if os.getenv("ONTOCLI_NAMESPACE_CAPACITY"):
            config.parser.namespace_capacity = int(os.getenv("ONTOCLI_NAMESPACE_CAPACITY"))

        if os.getenv("ONTOCLI_QUERY_TIMEOUT"):
            config.query.timeout_seconds = float(os.getenv("ONTOCLI_QUERY_TIMEOUT"))

        if os.getenv("ONTOCLI_STORAGE_BACKEND"):
            config.storage.backend = StorageBackendType(os.getenv("ONTOCLI_STORAGE_BACKEND"))

        if os.getenv("ONTOCLI_CLI_NAME"):
            config.generator.cli_name = os.getenv("ONTOCLI_CLI_NAME")

        if os.getenv("ONTOCLI_FEATURES") is not None:
            config.generator.flags = _name_list(os.getenv("ONTOCLI_FEATURES"))

        return config


def _name_list(value: Any) -> List[str]:
    """Accept a YAML list or a comma separated string."""
    if not value:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part) for part in value]


# Global config instance (lazy loaded)
_config: Optional[PipelineConfig] = None


def get_pipeline_config() -> PipelineConfig:
    """Get the global pipeline configuration (lazy loaded)."""
    global _config
    if _config is None:
        _config = PipelineConfig.from_env()
    return _config


def reload_config(path: Optional[str] = None) -> PipelineConfig:
    """Reload configuration from file."""
    global _config
    _config = PipelineConfig.from_yaml(path)
    return _config
