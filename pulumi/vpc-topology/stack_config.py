""" Stack Config """
import logging
from dataclasses import dataclass
from typing import Optional

import pulumi

from topology import InvalidConfigError, NetworkConfig, SubnetSpec, subnet_specs_from_object

DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class StackConfig:
    network: NetworkConfig
    subnets: dict[str, SubnetSpec]
    log_level: str = DEFAULT_LOG_LEVEL


def _log_level(value: Optional[str]) -> str:
    level = (value or DEFAULT_LOG_LEVEL).upper()
    # getLevelName maps a registered name back to its number
    if not isinstance(logging.getLevelName(level), int):
        raise InvalidConfigError("log_level", value, "unknown log level")
    return level


def load(config: Optional[pulumi.Config] = None) -> StackConfig:
    """
    Explicitly provide config outputs
    - `network` is required, `subnets` may be left out for an empty vpc
    - `tags` are applied to every resource
    """
    _config = config or pulumi.Config()

    return StackConfig(
        network=NetworkConfig.from_object(
            _config.require_object("network"),
            tags=_config.get_object("tags"),
        ),
        subnets=subnet_specs_from_object(_config.get_object("subnets")),
        log_level=_log_level(_config.get("log_level")),
    )
