"""
Deployment Sequencer
====================

Runs an ordered list of deployment steps against a registry and a backend:

- every step is validated before anything is deployed
- each artifact is resolved right before its own deploy call
- steps run one at a time, in declaration order
- the first failure stops the run; earlier deployments stay in the results
"""

import logging
import threading
from typing import List, Optional, Protocol, Sequence

from .backend import DeploymentBackend
from .errors import ArtifactNotFound, DeploymentRejected, MigrationCancelled
from .registry import ArtifactMetadata
from .steps import DeployedContract, DeploymentStep, DeployResult, validate_steps

logger = logging.getLogger(__name__)


class ArtifactRegistry(Protocol):
    def resolve(self, name: str) -> ArtifactMetadata:
        ...


class CancellationToken:
    """Cooperative cancellation, only honored between steps"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class Sequencer:
    def __init__(self, registry: ArtifactRegistry, backend: DeploymentBackend):
        self.registry = registry
        self.backend = backend

    def run(self, steps: Sequence[DeploymentStep],
            cancel: Optional[CancellationToken] = None) -> List[DeployResult]:
        """
        Execute `steps` in order

        Args:
            steps: Steps to deploy, possibly empty
            cancel: Optional token checked before each step

        Returns:
            One DeployResult per executed step. The last one carries the
            error when the run stopped early.

        Raises:
            InvalidStepDeclaration: If any step is malformed; nothing is
                deployed in that case.
        """
        steps = list(steps)
        validate_steps(steps)

        results: List[DeployResult] = []
        for index, step in enumerate(steps, start=1):
            if cancel is not None and cancel.cancelled:
                logger.warning(f"Run cancelled before step {index} ({step.name})")
                results.append(DeployResult(index, step.name, error=MigrationCancelled(index)))
                break

            result = self._run_step(index, step)
            results.append(result)
            if not result.ok:
                break

        return results

    def _run_step(self, index: int, step: DeploymentStep) -> DeployResult:
        logger.info(f"Step {index}: deploying {step.name}")
        try:
            metadata = self.registry.resolve(step.name)
        except ArtifactNotFound as e:
            logger.error(f"Step {index}: {e}")
            return DeployResult(index, step.name, error=e)

        try:
            contract = self.backend.deploy(metadata, step.args)
        except DeploymentRejected as e:
            error = e.at(index)
            logger.error(str(error))
            return DeployResult(index, step.name, error=error)
        except Exception as e:
            # Backends outside this package may raise anything
            error = DeploymentRejected(step.name, str(e) or type(e).__name__, index=index)
            error.__cause__ = e
            logger.error(str(error))
            return DeployResult(index, step.name, error=error)

        if not isinstance(contract, DeployedContract):
            error = DeploymentRejected(step.name, f"backend returned {contract!r} instead of a deployed contract",
                                       index=index)
            logger.error(str(error))
            return DeployResult(index, step.name, error=error)

        logger.info(f"Step {index}: {step.name} deployed at {contract.address}")
        return DeployResult(index, step.name, contract=contract)


def run(steps: Sequence[DeploymentStep], registry: ArtifactRegistry, backend: DeploymentBackend,
        cancel: Optional[CancellationToken] = None) -> List[DeployResult]:
    return Sequencer(registry, backend).run(steps, cancel=cancel)


def succeeded(results: Sequence[DeployResult]) -> bool:
    return all(result.ok for result in results)


def summarize(results: Sequence[DeployResult]) -> str:
    deployed = sum(1 for result in results if result.ok)
    failed = [result for result in results if not result.ok]
    if not failed:
        return f"{deployed} contract(s) deployed"
    failure = failed[0]
    return f"{deployed} contract(s) deployed, stopped at step {failure.index} ({failure.name}): {failure.error}"
