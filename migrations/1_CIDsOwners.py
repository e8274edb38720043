# Deploys the CIDsOwners contract from build/contracts/CIDsOwners.json
from chainmigrate import DeploymentStep

steps = [
    DeploymentStep.of("CIDsOwners"),
]
