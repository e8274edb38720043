"""
Build-artifact registries
Resolve contract names to the ABI and bytecode produced by the compiler.
"""

import os
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .errors import ArtifactNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArtifactMetadata:
    """Compiled output of a contract"""
    name: str
    abi: List[Dict[str, Any]]
    bytecode: str
    source_path: Optional[str] = None


def _extract_bytecode(data: Dict[str, Any]) -> str:
    bytecode = data.get('bytecode', '')
    # Foundry nests the hex under "object"
    if isinstance(bytecode, dict):
        bytecode = bytecode.get('object', '')
    if not isinstance(bytecode, str):
        return ''
    if bytecode and not bytecode.startswith('0x'):
        bytecode = '0x' + bytecode
    return bytecode


def metadata_from_artifact(name: str, data: Dict[str, Any], source_path: Optional[str] = None) -> ArtifactMetadata:
    """Validate a parsed artifact document and turn it into ArtifactMetadata"""
    if not isinstance(data, dict):
        raise ArtifactNotFound(name, "artifact is not a JSON object")

    abi = data.get('abi')
    if not isinstance(abi, list):
        raise ArtifactNotFound(name, "artifact has no ABI")

    bytecode = _extract_bytecode(data)
    if bytecode in ('', '0x'):
        raise ArtifactNotFound(name, "artifact has no bytecode (interface or abstract contract?)")

    return ArtifactMetadata(name=name, abi=abi, bytecode=bytecode, source_path=source_path)


class BuildArtifactRegistry:
    """
    Looks up artifacts in a build output directory

    Both the Truffle layout (<build_dir>/<Name>.json) and the Hardhat layout
    (<build_dir>/contracts/<Name>.sol/<Name>.json) are understood.
    """

    def __init__(self, build_dir: str):
        self.build_dir = build_dir
        self._cache: Dict[str, ArtifactMetadata] = {}

    def candidate_paths(self, name: str) -> List[str]:
        return [
            os.path.join(self.build_dir, f'{name}.json'),
            os.path.join(self.build_dir, 'contracts', f'{name}.sol', f'{name}.json'),
            os.path.join(self.build_dir, f'{name}.sol', f'{name}.json'),
        ]

    def find(self, name: str) -> Optional[str]:
        for path in self.candidate_paths(name):
            if os.path.isfile(path):
                return path
        return None

    def resolve(self, name: str) -> ArtifactMetadata:
        """Return the metadata of `name` or raise ArtifactNotFound"""
        if name in self._cache:
            return self._cache[name]

        path = self.find(name)
        if path is None:
            raise ArtifactNotFound(name, f"no build artifact in {self.build_dir}")

        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ArtifactNotFound(name, f"could not read {path}: {e}") from e

        metadata = metadata_from_artifact(name, data, source_path=path)
        logger.debug(f"Resolved artifact {name} from {path}")
        self._cache[name] = metadata
        return metadata


class InMemoryRegistry:
    """Registry backed by a dict of already-parsed artifacts"""

    def __init__(self, artifacts: Optional[Dict[str, ArtifactMetadata]] = None):
        self.artifacts: Dict[str, ArtifactMetadata] = dict(artifacts or {})

    def add(self, metadata: ArtifactMetadata) -> None:
        self.artifacts[metadata.name] = metadata

    def resolve(self, name: str) -> ArtifactMetadata:
        try:
            return self.artifacts[name]
        except KeyError:
            raise ArtifactNotFound(name) from None
