"""Configuration loading and validation for lakeshelf.

Configuration is loaded from lakeshelf.yaml and validated using Pydantic.
Every field can be overridden with a ``LAKESHELF_`` environment variable
(nested fields use ``__``, e.g. ``LAKESHELF_UPLOAD__RETRY_DELAY=0.5``).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import omegaconf as oc
import pydantic as pdt
import pydantic_settings as pdts

import lakeshelf.errors as errors
import lakeshelf.rowgroup as rowgroup

DEFAULT_CONFIG_PATH = Path("lakeshelf.yaml")


class SectionSettings(pdt.BaseModel, frozen=True, extra="forbid"):
    """Base for nested configuration sections."""

    pass


class UploadSettings(SectionSettings):
    """Upload behaviour.

    ``retry_delay`` is the pause between deleting an existing file and
    uploading again.
    """

    overwrite: bool = True
    retry_delay: float = pdt.Field(default=1.0, ge=0)


class FormatSettings(SectionSettings):
    json_indent: int | None = 2
    parquet_compression: rowgroup.Compression = "snappy"


class LakeshelfSettings(pdts.BaseSettings):
    """Root configuration loaded from lakeshelf.yaml.

    Example lakeshelf.yaml:
        connection_string: abfs://analytics
        file_system: raw
        storage_options:
          account_name: myaccount
          anon: false
        upload:
          overwrite: true
          retry_delay: 1.0
        formats:
          json_indent: 2
          parquet_compression: zstd
    """

    connection_string: str = ""
    file_system: str = "default"
    storage_options: dict[str, Any] = pdt.Field(default_factory=dict)
    upload: UploadSettings = pdt.Field(default_factory=UploadSettings)
    formats: FormatSettings = pdt.Field(default_factory=FormatSettings)

    model_config = pdts.SettingsConfigDict(
        frozen=True,
        extra="forbid",
        env_prefix="LAKESHELF_",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[pdts.BaseSettings],
        init_settings: pdts.PydanticBaseSettingsSource,
        env_settings: pdts.PydanticBaseSettingsSource,
        dotenv_settings: pdts.PydanticBaseSettingsSource,
        file_secret_settings: pdts.PydanticBaseSettingsSource,
    ) -> tuple[pdts.PydanticBaseSettingsSource, ...]:
        """Environment variables take precedence over values from the YAML file."""
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    def require_connection_string(self) -> str:
        """Return the connection string or fail with a configuration error.

        Raises:
            ConfigurationError: If no connection string is configured.
        """
        if not self.connection_string.strip():
            raise errors.ConfigurationError(
                context="Resolving storage connection",
                cause="Storage connection string not found",
                fix="Set 'connection_string' in lakeshelf.yaml or the LAKESHELF_CONNECTION_STRING environment variable",
            )
        return self.connection_string


def load_settings(path: Path | str | None = None) -> LakeshelfSettings:
    """Load and validate lakeshelf configuration.

    Args:
        path: Path to a YAML file. If None, lakeshelf.yaml in the working
            directory is used when present, otherwise only environment
            variables are read.

    Returns:
        Validated LakeshelfSettings instance.

    Raises:
        ConfigNotFoundError: If an explicit path doesn't exist.
        ConfigValidationError: If config fails validation.
    """
    if path is None:
        config_path = DEFAULT_CONFIG_PATH if DEFAULT_CONFIG_PATH.exists() else None
    else:
        config_path = Path(path)
        if not config_path.exists():
            raise errors.ConfigNotFoundError(str(config_path))

    source = str(config_path) if config_path is not None else "environment"
    try:
        values: dict = {}
        if config_path is not None:
            config = oc.OmegaConf.load(config_path)
            values = oc.OmegaConf.to_container(config, resolve=True) or {}
        return LakeshelfSettings(**values)
    except pdt.ValidationError as e:
        raise errors.ConfigValidationError(
            path=source,
            details=_format_validation_errors(e),
        ) from e
    except oc.errors.OmegaConfBaseException as e:
        raise errors.ConfigValidationError(
            path=source,
            details=str(e),
        ) from e


def _format_validation_errors(error: pdt.ValidationError) -> str:
    """Format Pydantic validation errors into readable messages."""
    messages = []
    for err in error.errors():
        loc = ".".join(str(x) for x in err["loc"])
        msg = err["msg"]
        messages.append(f"  - {loc}: {msg}")
    return "\n".join(messages)

