#!/usr/bin/env python3
"""
Tests for the CIDsOwners contract client
"""

from unittest.mock import MagicMock

import pytest

from chainmigrate.cids_owners import CIDS_OWNERS_ABI, CIDsOwners, UploadSummary, upload_and_register
from chainmigrate.errors import ExternalServiceError

CONTRACT = "0x" + "22" * 20
OWNER = "0x" + "11" * 20
PRIVATE_KEY = "0x" + "4c" * 32
TX_HASH = bytes.fromhex("cd" * 32)


def make_w3(status=1):
    w3 = MagicMock()
    w3.to_checksum_address.side_effect = lambda address: address
    w3.eth.account.from_key.return_value.address = OWNER
    w3.eth.get_transaction_count.return_value = 3
    w3.eth.send_raw_transaction.return_value = TX_HASH
    w3.eth.wait_for_transaction_receipt.return_value = {
        'status': status,
        'blockNumber': 9,
        'transactionHash': TX_HASH,
    }
    return w3


class TestCIDsOwners:
    """Test class for CIDsOwners"""

    def setup_method(self):
        self.w3 = make_w3()
        self.cids_owners = CIDsOwners(self.w3, CONTRACT, chain_id=1337)
        self.functions = self.w3.eth.contract.return_value.functions

    def test_contract_uses_bundled_abi(self):
        self.w3.eth.contract.assert_called_once_with(address=CONTRACT, abi=CIDS_OWNERS_ABI)

    def test_register_cid_owner(self):
        """Test that register(cid) is signed by the owner and confirmed"""
        receipt = self.cids_owners.register_cid_owner("QmHash", PRIVATE_KEY)

        assert receipt['blockNumber'] == 9
        self.functions.register.assert_called_once_with("QmHash")
        self.functions.register.return_value.build_transaction.assert_called_once_with({
            'from': OWNER,
            'nonce': 3,
            'chainId': 1337,
        })
        signed = self.w3.eth.account.sign_transaction.return_value
        self.w3.eth.send_raw_transaction.assert_called_once_with(signed.raw_transaction)

    def test_register_reverted(self):
        cids_owners = CIDsOwners(make_w3(status=0), CONTRACT)
        with pytest.raises(ExternalServiceError, match="reverted"):
            cids_owners.register_cid_owner("QmHash", PRIVATE_KEY)

    def test_register_rpc_error(self):
        self.w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")
        with pytest.raises(ExternalServiceError) as exc_info:
            self.cids_owners.register_cid_owner("QmHash", PRIVATE_KEY)
        assert exc_info.value.system == "Ethereum"
        assert "nonce too low" in str(exc_info.value)

    def test_owned_cids(self):
        self.functions.getOwnedCIDs.return_value.call.return_value = ["QmA", "QmB"]

        assert self.cids_owners.owned_cids(OWNER) == ["QmA", "QmB"]
        self.functions.getOwnedCIDs.assert_called_once_with(OWNER)


class TestUploadAndRegister:
    """Test class for upload_and_register"""

    def test_summary(self):
        ipfs = MagicMock()
        ipfs.upload_file.return_value = "QmHash"
        cids_owners = CIDsOwners(make_w3(), CONTRACT)

        summary = upload_and_register(ipfs, cids_owners, "hello.txt", PRIVATE_KEY, "/hello.txt")

        ipfs.upload_file.assert_called_once_with("hello.txt", "/hello.txt")
        assert summary == UploadSummary(cid="QmHash", tx_hash="0x" + "cd" * 32)
        assert str(summary) == f"CID: 'QmHash', Ethereum transaction hash: '0x{'cd' * 32}'"
