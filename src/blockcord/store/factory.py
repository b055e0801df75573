from __future__ import annotations

import logging
from typing import Optional

from ..commands.synchronizer import DefinitionSource
from ..core.config import DefinitionSourceConfig
from ..core.exceptions import ConfigError
from .convex import ConvexDefinitionSource
from .yaml_source import YamlDefinitionSource


def build_definition_source(
    config: DefinitionSourceConfig, *, logger: Optional[logging.Logger] = None
) -> DefinitionSource:
    if config.source == "yaml":
        return YamlDefinitionSource(config.yaml_path)
    if not config.convex_url:
        raise ConfigError(f"env var {config.convex_url_env} is unset")
    return ConvexDefinitionSource(
        deployment_url=config.convex_url,
        query_path=config.query_path,
        timeout_seconds=config.timeout_seconds,
        logger=logger,
    )


async def close_definition_source(source: DefinitionSource) -> None:
    if isinstance(source, ConvexDefinitionSource):
        await source.close()
