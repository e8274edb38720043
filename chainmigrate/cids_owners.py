"""
CIDsOwners contract client
Registers IPFS CIDs to the account that uploaded them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from web3 import Web3
from web3.exceptions import Web3Exception

from .errors import ExternalServiceError
from .ipfs import IpfsClient

logger = logging.getLogger(__name__)

CIDS_OWNERS_ABI: List[Dict[str, Any]] = [
    {
        "inputs": [{"internalType": "string", "name": "cid", "type": "string"}],
        "name": "register",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "address", "name": "owner", "type": "address"}],
        "name": "getOwnedCIDs",
        "outputs": [{"internalType": "string[]", "name": "cids", "type": "string[]"}],
        "stateMutability": "view",
        "type": "function",
    },
]

ETHEREUM_ERRORS = (Web3Exception, ValueError, requests.exceptions.RequestException)


@dataclass
class UploadSummary:
    cid: str
    tx_hash: str

    def __str__(self) -> str:
        return f"CID: '{self.cid}', Ethereum transaction hash: '{self.tx_hash}'"


class CIDsOwners:
    """Wrapper around a deployed CIDsOwners contract"""

    def __init__(self, w3: Web3, address: str, abi: Optional[List[Dict[str, Any]]] = None,
                 chain_id: int = 1, receipt_timeout: int = 120):
        self.w3 = w3
        self.address = w3.to_checksum_address(address)
        self.chain_id = chain_id
        self.receipt_timeout = receipt_timeout
        self.contract = w3.eth.contract(address=self.address, abi=abi or CIDS_OWNERS_ABI)

    def register_cid_owner(self, cid: str, private_key: str) -> Any:
        """Register `cid` to the account of `private_key` and return the receipt"""
        try:
            account = self.w3.eth.account.from_key(private_key)
            tx = self.contract.functions.register(cid).build_transaction({
                'from': account.address,
                'nonce': self.w3.eth.get_transaction_count(account.address),
                'chainId': self.chain_id,
            })
            signed_tx = self.w3.eth.account.sign_transaction(tx, private_key)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
            logger.info(f"CID registration transaction sent: {Web3.to_hex(tx_hash)}")

            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except ETHEREUM_ERRORS as e:
            raise ExternalServiceError(ExternalServiceError.ETHEREUM, str(e)) from e

        if receipt['status'] != 1:
            raise ExternalServiceError(ExternalServiceError.ETHEREUM,
                                       f"register transaction {Web3.to_hex(tx_hash)} reverted")
        logger.info(f"CID {cid} registered in block {receipt['blockNumber']}")
        return receipt

    def owned_cids(self, owner: str) -> List[str]:
        """CIDs registered by `owner`"""
        try:
            return list(self.contract.functions.getOwnedCIDs(self.w3.to_checksum_address(owner)).call())
        except ETHEREUM_ERRORS as e:
            raise ExternalServiceError(ExternalServiceError.ETHEREUM, str(e)) from e


def upload_and_register(ipfs: IpfsClient, cids_owners: CIDsOwners, filepath: str,
                        private_key: str, remote_path: Optional[str] = None) -> UploadSummary:
    """Upload a file to IPFS and register its CID to the uploader"""
    cid = ipfs.upload_file(filepath, remote_path)
    receipt = cids_owners.register_cid_owner(cid, private_key)
    return UploadSummary(cid=cid, tx_hash=Web3.to_hex(receipt['transactionHash']))
