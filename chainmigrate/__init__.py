"""
chainmigrate
============

Deploys compiled smart contracts in declaration order.

Structure:
- steps: deployment step declarations and results
- registry: build-artifact lookup (Truffle and Hardhat layouts)
- backend: web3.py deployment backend
- sequencer: ordered, abort-on-first-failure runner
- loader: numbered migration declaration files
- ipfs / cids_owners: IPFS upload and CID registration
"""

from .errors import (ArtifactNotFound, DeploymentRejected, ExternalServiceError,
                     InvalidArguments, InvalidStepDeclaration, MigrationCancelled,
                     MigrationError)
from .registry import ArtifactMetadata, BuildArtifactRegistry, InMemoryRegistry
from .sequencer import CancellationToken, Sequencer, run, summarize
from .steps import ArtifactReference, DeployedContract, DeploymentStep, DeployResult

__version__ = "1.0.0"

__all__ = [
    'ArtifactMetadata',
    'ArtifactNotFound',
    'ArtifactReference',
    'BuildArtifactRegistry',
    'CancellationToken',
    'DeployedContract',
    'DeploymentRejected',
    'DeploymentStep',
    'DeployResult',
    'ExternalServiceError',
    'InMemoryRegistry',
    'InvalidArguments',
    'InvalidStepDeclaration',
    'MigrationCancelled',
    'MigrationError',
    'Sequencer',
    'run',
    'summarize',
]
