"""Pipeline configuration.

Settings come from an optional YAML file, with credentials and endpoints
overridable from the environment so secrets never need to live on disk.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from tracetune.pipeline.assembler import MAX_LOGGED_FAILURES
from tracetune.pipeline.splitter import DEFAULT_TRAIN_SPLIT_RATIO
from tracetune.sources import DEFAULT_LANGFUSE_BASE_URL, LangfuseObservationSource
from tracetune.storage import DEFAULT_BLOB_BASE_URL, HttpBlobGateway, LocalDirectoryGateway
from tracetune.types import ConfigurationError

# Environment variable -> config field
ENV_OVERRIDES: dict[str, str] = {
    "LANGFUSE_BASE_URL": "langfuse_base_url",
    "LANGFUSE_PUBLIC_KEY": "langfuse_public_key",
    "LANGFUSE_SECRET_KEY": "langfuse_secret_key",
    "BLOB_BASE_URL": "blob_base_url",
    "BLOB_READ_WRITE_TOKEN": "blob_token",
    "TRACETUNE_OUTPUT_DIR": "output_dir",
}


@dataclass
class PipelineConfig:
    """Settings for fetching, converting and storing datasets.

    Attributes:
        langfuse_base_url: Langfuse API host.
        langfuse_public_key: Langfuse public key (basic auth user).
        langfuse_secret_key: Langfuse secret key (basic auth password).
        blob_base_url: Blob store endpoint for uploads.
        blob_token: Blob store read/write token.
        output_dir: Directory for locally stored artifacts.
        train_split_ratio: Default training share when splitting.
        default_limit: Default page size when fetching observations.
        max_logged_failures: Cap on individually logged conversion failures.
        request_timeout: HTTP timeout in seconds.
    """

    langfuse_base_url: str = DEFAULT_LANGFUSE_BASE_URL
    langfuse_public_key: str | None = None
    langfuse_secret_key: str | None = None
    blob_base_url: str = DEFAULT_BLOB_BASE_URL
    blob_token: str | None = None
    output_dir: str = "finetune-output"
    train_split_ratio: float = DEFAULT_TRAIN_SPLIT_RATIO
    default_limit: int = 100
    max_logged_failures: int = MAX_LOGGED_FAILURES
    request_timeout: float = 30.0

    def observation_source(self) -> LangfuseObservationSource:
        """Build a Langfuse source from the configured credentials.

        Raises:
            ConfigurationError: If either Langfuse key is missing.
        """
        if not self.langfuse_public_key or not self.langfuse_secret_key:
            raise ConfigurationError("Langfuse credentials not configured")
        return LangfuseObservationSource(
            public_key=self.langfuse_public_key,
            secret_key=self.langfuse_secret_key,
            base_url=self.langfuse_base_url,
            timeout=self.request_timeout,
        )

    def blob_gateway(self) -> HttpBlobGateway:
        """Build a blob store gateway from the configured token.

        Raises:
            ConfigurationError: If no blob token is configured.
        """
        if not self.blob_token:
            raise ConfigurationError("Blob storage token not configured")
        return HttpBlobGateway(
            token=self.blob_token,
            base_url=self.blob_base_url,
            timeout=self.request_timeout,
        )

    def local_gateway(self, output_dir: Path | None = None) -> LocalDirectoryGateway:
        return LocalDirectoryGateway(output_dir or Path(self.output_dir))


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> PipelineConfig:
    """Load configuration from YAML, then apply environment overrides.

    Args:
        path: Optional YAML file with PipelineConfig fields as keys.
        environ: Environment to read overrides from. Defaults to os.environ.

    Returns:
        The merged PipelineConfig.

    Raises:
        FileNotFoundError: If the YAML file does not exist.
        yaml.YAMLError: If the YAML is malformed.
        ValueError: If the file is not a mapping or has unknown keys.
    """
    values: dict[str, Any] = {}

    if path is not None:
        with open(path) as fh:
            raw = yaml.safe_load(fh) or {}
        if not isinstance(raw, dict):
            msg = f"Config file must contain a mapping: {path}"
            raise ValueError(msg)
        known = {f.name for f in fields(PipelineConfig)}
        unknown = sorted(set(raw) - known)
        if unknown:
            msg = f"Unknown config keys in {path}: {unknown}"
            raise ValueError(msg)
        values.update(raw)

    env = os.environ if environ is None else environ
    for var, key in ENV_OVERRIDES.items():
        if env.get(var):
            values[key] = env[var]

    return PipelineConfig(**values)
