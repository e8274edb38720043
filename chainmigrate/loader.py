"""
Migration declaration files

A migrations directory holds files such as `1_CIDsOwners.py` or
`2_uploads.json`. They run in order of their numeric prefix, one sequencer
run per file.
"""

import os
import re
import json
import logging
import importlib.util
from dataclasses import dataclass, field
from typing import List, Optional

from .backend import DeploymentBackend
from .errors import InvalidStepDeclaration
from .sequencer import ArtifactRegistry, CancellationToken, Sequencer, succeeded
from .steps import DeploymentStep, DeployResult, coerce_steps, validate_steps

logger = logging.getLogger(__name__)

PREFIX_RE = re.compile(r'^(\d+)_')
EXTENSIONS = ('.py', '.json')


@dataclass
class MigrationFile:
    path: str
    number: int
    steps: List[DeploymentStep] = field(default_factory=list)

    @property
    def name(self) -> str:
        return os.path.basename(self.path)


@dataclass
class MigrationOutcome:
    migration: MigrationFile
    results: List[DeployResult]

    @property
    def ok(self) -> bool:
        return succeeded(self.results)


def discover(directory: str) -> List[str]:
    """Return the declaration files of `directory` sorted by numeric prefix"""
    if not os.path.isdir(directory):
        raise InvalidStepDeclaration(f"migrations directory not found: {directory}")

    found = []
    for entry in os.listdir(directory):
        path = os.path.join(directory, entry)
        if entry.startswith('.') or not os.path.isfile(path):
            continue
        if not entry.endswith(EXTENSIONS):
            continue
        match = PREFIX_RE.match(entry)
        if match is None:
            logger.debug(f"Skipping {entry}: no numeric prefix")
            continue
        found.append((int(match.group(1)), entry, path))

    found.sort()
    return [path for _, _, path in found]


def _load_python(path: str) -> list:
    module_name = 'chainmigrate_migration_' + re.sub(r'\W', '_', os.path.basename(path)[:-3])
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise InvalidStepDeclaration(f"{path}: cannot be imported")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise InvalidStepDeclaration(f"{path}: failed to import: {e}") from e

    steps = getattr(module, 'steps', None)
    if not isinstance(steps, (list, tuple)):
        raise InvalidStepDeclaration(f"{path}: must define a 'steps' list")
    return list(steps)


def _load_json(path: str) -> list:
    try:
        with open(path, 'r') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise InvalidStepDeclaration(f"{path}: {e}") from e

    steps = data.get('steps') if isinstance(data, dict) else None
    if not isinstance(steps, list):
        raise InvalidStepDeclaration(f"{path}: must contain a 'steps' list")
    return steps


def load_declaration(path: str) -> MigrationFile:
    """Load and coerce the steps declared in one file"""
    match = PREFIX_RE.match(os.path.basename(path))
    if match is None:
        raise InvalidStepDeclaration(f"{path}: file name must start with a number, e.g. 1_{os.path.basename(path)}")

    raw = _load_python(path) if path.endswith('.py') else _load_json(path)
    try:
        steps = coerce_steps(raw)
        validate_steps(steps)
    except InvalidStepDeclaration as e:
        raise InvalidStepDeclaration(f"{os.path.basename(path)}: {e}") from e
    return MigrationFile(path=path, number=int(match.group(1)), steps=steps)


def load_all(directory: str) -> List[MigrationFile]:
    return [load_declaration(path) for path in discover(directory)]


def run_migrations(directory: str, registry: ArtifactRegistry, backend: DeploymentBackend,
                   cancel: Optional[CancellationToken] = None) -> List[MigrationOutcome]:
    """
    Run every declaration file of `directory` in order

    All files are loaded before the first deployment so a malformed file
    fails the whole run up front. The run stops after the first file with a
    failed step.
    """
    migrations = load_all(directory)
    sequencer = Sequencer(registry, backend)
    outcomes: List[MigrationOutcome] = []

    for migration in migrations:
        logger.info(f"Running migration {migration.name} ({len(migration.steps)} step(s))")
        outcome = MigrationOutcome(migration, sequencer.run(migration.steps, cancel=cancel))
        outcomes.append(outcome)
        if not outcome.ok:
            logger.error(f"Migration {migration.name} failed")
            break

    return outcomes
