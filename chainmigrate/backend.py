"""
Deployment backends
The sequencer only relies on the DeploymentBackend protocol; Web3Backend is
the concrete implementation that publishes contracts through a JSON-RPC node.
"""

import logging
from typing import Any, Optional, Protocol, Sequence

import requests
from web3 import Web3
from web3.exceptions import Web3Exception
from web3.middleware import ExtraDataToPOAMiddleware

from .errors import DeploymentRejected, ExternalServiceError
from .registry import ArtifactMetadata
from .steps import DeployedContract

logger = logging.getLogger(__name__)


class DeploymentBackend(Protocol):
    def deploy(self, metadata: ArtifactMetadata, args: Sequence[Any]) -> DeployedContract:
        """Publish `metadata` with constructor `args` or raise DeploymentRejected"""
        ...


def connect(rpc_url: str, poa: bool = False, timeout: int = 30) -> Web3:
    """Connect to an Ethereum node over HTTP"""
    w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={'timeout': timeout}))
    if poa:
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    if not w3.is_connected():
        raise ExternalServiceError(ExternalServiceError.ETHEREUM, f"could not connect to RPC URL {rpc_url}")

    logger.info(f"Connected to blockchain at {rpc_url}")
    return w3


class Web3Backend:
    """
    Deploys contracts with web3.py

    With a private key the constructor transaction is signed locally and sent
    raw. Without one, the node's default (unlocked) account sends it, which is
    what local development chains such as Ganache or Anvil expect.
    """

    def __init__(self, w3: Web3, private_key: Optional[str] = None,
                 chain_id: Optional[int] = None, gas_limit: Optional[int] = None,
                 receipt_timeout: int = 120):
        self.w3 = w3
        self.private_key = private_key
        self.chain_id = chain_id
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout
        self.account = w3.eth.account.from_key(private_key) if private_key else None

    @property
    def sender(self) -> str:
        if self.account is not None:
            return self.account.address

        default = self.w3.eth.default_account
        if isinstance(default, str) and Web3.is_address(default):
            return default

        accounts = self.w3.eth.accounts
        if not accounts:
            raise ExternalServiceError(ExternalServiceError.ETHEREUM,
                                       "no private key configured and the node has no unlocked accounts")
        return accounts[0]

    def _tx_params(self, sender: str) -> dict:
        params = {'from': sender}
        if self.chain_id is not None:
            params['chainId'] = self.chain_id
        if self.gas_limit is not None:
            params['gas'] = self.gas_limit
        return params

    def deploy(self, metadata: ArtifactMetadata, args: Sequence[Any]) -> DeployedContract:
        try:
            return self._deploy(metadata, args)
        except DeploymentRejected:
            raise
        except (Web3Exception, ValueError, ExternalServiceError, requests.exceptions.RequestException) as e:
            raise DeploymentRejected(metadata.name, str(e)) from e

    def _deploy(self, metadata: ArtifactMetadata, args: Sequence[Any]) -> DeployedContract:
        contract = self.w3.eth.contract(abi=metadata.abi, bytecode=metadata.bytecode)
        constructor = contract.constructor(*args)
        sender = self.sender
        params = self._tx_params(sender)

        if self.account is not None:
            params['nonce'] = self.w3.eth.get_transaction_count(sender)
            tx = constructor.build_transaction(params)
            signed_tx = self.w3.eth.account.sign_transaction(tx, self.private_key)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        else:
            tx_hash = constructor.transact(params)

        tx_hex = Web3.to_hex(tx_hash)
        logger.info(f"Deploying {metadata.name}: transaction {tx_hex} sent from {sender}")

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt['status'] != 1:
            raise DeploymentRejected(metadata.name, f"transaction {tx_hex} reverted")

        address = receipt.get('contractAddress')
        if not address:
            raise DeploymentRejected(metadata.name, f"transaction {tx_hex} created no contract")

        logger.info(f"{metadata.name} deployed at {address} in block {receipt['blockNumber']}")
        return DeployedContract(
            name=metadata.name,
            address=address,
            tx_hash=tx_hex,
            block_number=receipt['blockNumber'],
        )
