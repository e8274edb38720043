"""
Exceptions raised by chainmigrate
All of them are fatal to a migration run; nothing is retried automatically.
"""

from typing import Optional


class MigrationError(Exception):
    """Base class for every chainmigrate error"""


class InvalidStepDeclaration(MigrationError):
    """A deployment step (or a whole declaration file) is malformed"""

    def __init__(self, message: str, index: Optional[int] = None):
        self.index = index
        if index is not None:
            message = f"step {index}: {message}"
        super().__init__(message)


class ArtifactNotFound(MigrationError):
    """No deployable build output exists for an artifact name"""

    def __init__(self, name: str, reason: str = "no build artifact found"):
        self.name = name
        self.reason = reason
        super().__init__(f"artifact '{name}': {reason}")


class DeploymentRejected(MigrationError):
    """The backend refused or could not confirm a deployment"""

    def __init__(self, name: str, reason: str, index: Optional[int] = None):
        self.name = name
        self.reason = reason
        self.index = index
        super().__init__(self._format())

    def _format(self) -> str:
        prefix = f"step {self.index}: " if self.index is not None else ""
        return f"{prefix}deployment of '{self.name}' rejected: {self.reason}"

    def at(self, index: int) -> "DeploymentRejected":
        """Return a copy tagged with the step index it happened at"""
        tagged = DeploymentRejected(self.name, self.reason, index=index)
        tagged.__cause__ = self.__cause__
        return tagged


class MigrationCancelled(MigrationError):
    """The run was cancelled before the given step started"""

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"run cancelled before step {index}")


class InvalidArguments(MigrationError):
    """
    Invalid values were passed as arguments or configuration

    `names` holds the offending parameter name, or several of them wrapped
    in round brackets, e.g. "(rpc_url,chain_id)".
    """

    def __init__(self, names: str, message: str):
        self.names = names
        self.message = message
        super().__init__(f"{names} arguments have invalid values. {message}")


class ExternalServiceError(MigrationError):
    """An external system (Ethereum node, IPFS daemon) reported an error"""

    ETHEREUM = "Ethereum"
    IPFS = "IPFS"

    def __init__(self, system: str, message: str):
        self.system = system
        self.message = message
        super().__init__(f"External error produced by the {system} system: {message}")
