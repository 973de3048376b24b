"""
Input file parser for clusterdyn.
"""

from pathlib import Path
from typing import Any, Dict, Union

import yaml

from ..core.network import NetworkConfiguration, ReactionNetwork


class InputParser:
    """Parser for network YAML files.

    The network description is read from the top-level ``network`` key if
    present, otherwise from the document root.
    """

    def __init__(self):
        pass

    def _parse_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """Parse YAML format input file."""
        with open(file_path, "r") as f:
            data = yaml.safe_load(f)
        if data is None:
            raise ValueError(f"Input file {file_path} is empty")
        return data

    def _network_section(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        data = self._parse_yaml_file(Path(file_path))
        return data.get("network", data)

    def get_network_from_yaml(self, file_path: Union[str, Path]) -> ReactionNetwork:
        """Parse a network YAML file and return the network."""
        return ReactionNetwork.from_config(self._network_section(file_path))

    def get_configuration_from_yaml(self, file_path: Union[str, Path]) -> NetworkConfiguration:
        """Parse only the network options, templates and rate constant settings."""
        return NetworkConfiguration.from_config(self._network_section(file_path))

    def write_network_to_yaml(self, network: ReactionNetwork, file_path: Union[str, Path]) -> None:
        """Write a network configuration that ``get_network_from_yaml`` reads back."""
        with open(Path(file_path), "w") as f:
            yaml.safe_dump({"network": network.to_config()}, f, sort_keys=False)
