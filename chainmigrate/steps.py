"""
Deployment step declarations and their results
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .errors import InvalidStepDeclaration


@dataclass(frozen=True)
class ArtifactReference:
    """Name of a compiled contract artifact"""
    name: str


@dataclass(frozen=True)
class DeploymentStep:
    """One instruction to publish an artifact, with its constructor arguments"""
    artifact: ArtifactReference
    args: Tuple[Any, ...] = ()

    @classmethod
    def of(cls, name: str, *args: Any) -> "DeploymentStep":
        return cls(ArtifactReference(name), tuple(args))

    @property
    def name(self) -> str:
        return self.artifact.name


@dataclass
class DeployedContract:
    """Handle of a published contract instance"""
    name: str
    address: str
    tx_hash: str
    block_number: Optional[int] = None


@dataclass
class DeployResult:
    """
    Outcome of one executed step

    Exactly one of `contract` and `error` is set. `index` is 1-based.
    """
    index: int
    name: str
    contract: Optional[DeployedContract] = None
    error: Optional[Exception] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.error is None and self.contract is not None

    def __str__(self) -> str:
        if self.ok:
            return f"[{self.index}] {self.name} deployed at {self.contract.address}"
        return f"[{self.index}] {self.name} failed: {self.error}"


def validate_step(step: Any, index: int) -> None:
    """Raise InvalidStepDeclaration if `step` cannot be executed"""
    if not isinstance(step, DeploymentStep):
        raise InvalidStepDeclaration(
            f"expected a DeploymentStep, got {type(step).__name__}", index=index)
    if not isinstance(step.artifact, ArtifactReference):
        raise InvalidStepDeclaration("artifact must be an ArtifactReference", index=index)

    name = step.artifact.name
    if not isinstance(name, str) or not name.strip():
        raise InvalidStepDeclaration("artifact name must be a non-empty string", index=index)
    # Names are used to build file paths in the registry
    if "/" in name or "\\" in name or name in (".", ".."):
        raise InvalidStepDeclaration(f"invalid artifact name '{name}'", index=index)
    if not isinstance(step.args, tuple):
        raise InvalidStepDeclaration("constructor args must be a tuple", index=index)


def validate_steps(steps: Sequence[Any]) -> None:
    """Validate every step up front, before anything is deployed"""
    for index, step in enumerate(steps, start=1):
        validate_step(step, index)


def coerce_step(value: Any, index: int) -> DeploymentStep:
    """
    Build a DeploymentStep from the loose forms accepted in declaration files

    Accepted: a DeploymentStep, a bare artifact name, a (name, *args) tuple
    or list, or a {"artifact": name, "args": [...]} mapping.
    """
    if isinstance(value, DeploymentStep):
        return value
    if isinstance(value, str):
        return DeploymentStep.of(value)
    if isinstance(value, (tuple, list)) and value:
        return DeploymentStep.of(value[0], *value[1:])
    if isinstance(value, dict):
        if "artifact" not in value:
            raise InvalidStepDeclaration("missing 'artifact' key", index=index)
        args = value.get("args", [])
        if not isinstance(args, list):
            raise InvalidStepDeclaration("'args' must be a list", index=index)
        return DeploymentStep.of(value["artifact"], *args)
    raise InvalidStepDeclaration(f"cannot build a step from {value!r}", index=index)


def coerce_steps(values: Iterable[Any]) -> List[DeploymentStep]:
    return [coerce_step(value, index) for index, value in enumerate(values, start=1)]
