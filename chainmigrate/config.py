"""
Configuration loaded from the environment and an optional .env file
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Optional
from urllib.parse import urlsplit

from dotenv import find_dotenv, load_dotenv
from eth_account import Account
from web3 import Web3

from .errors import InvalidArguments

TRUE_VALUES = ('1', 'true', 'yes', 'on')


@dataclass
class Settings:
    rpc_url: str = "http://localhost:8545"
    private_key: Optional[str] = None
    chain_id: int = 1337
    build_dir: str = "build/contracts"
    migrations_dir: str = "migrations"
    gas_limit: Optional[int] = None
    receipt_timeout: int = 120
    poa_middleware: bool = False
    ipfs_url: str = "http://localhost:5001"
    cids_owners_address: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "Settings":
        """Build settings from environment variables, after loading .env"""
        # Look for .env from the working directory, not from this package
        load_dotenv(dotenv_path or find_dotenv(usecwd=True))
        defaults = cls()
        return cls(
            rpc_url=os.getenv("RPC_URL", defaults.rpc_url),
            private_key=os.getenv("PRIVATE_KEY") or None,
            chain_id=_int_env("CHAIN_ID", defaults.chain_id),
            build_dir=os.getenv("BUILD_DIR", defaults.build_dir),
            migrations_dir=os.getenv("MIGRATIONS_DIR", defaults.migrations_dir),
            gas_limit=_int_env("GAS_LIMIT", None),
            receipt_timeout=_int_env("RECEIPT_TIMEOUT", defaults.receipt_timeout),
            poa_middleware=os.getenv("POA_MIDDLEWARE", "false").lower() in TRUE_VALUES,
            ipfs_url=os.getenv("IPFS_URL", defaults.ipfs_url),
            cids_owners_address=os.getenv("CIDS_OWNERS_ADDRESS") or None,
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            log_file=os.getenv("LOG_FILE") or None,
        )

    def override(self, **values: Any) -> "Settings":
        """Return a copy with every non-None value of `values` applied"""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


def _int_env(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidArguments(name, f"'{value}' is not an integer") from None


def validate_endpoint(url: str, names: str = "endpoint", require_port: bool = True) -> str:
    """Accept only http(s)://<host>[:<port>][/path] URLs"""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise InvalidArguments(names, f"Invalid URI. {e}") from None

    if parts.scheme not in ('http', 'https'):
        raise InvalidArguments(names, "only HTTP and HTTPS schemes are accepted")
    if not parts.hostname:
        raise InvalidArguments(names, "no host provided")
    if require_port and port is None:
        raise InvalidArguments(names, "no port provided")
    return url


def validate_address(address: str, names: str = "address") -> str:
    if not Web3.is_address(address):
        raise InvalidArguments(names, f"invalid format for Ethereum address '{address}'")
    return Web3.to_checksum_address(address)


def validate_private_key(key: str, names: str = "private_key") -> str:
    """Return the key with a 0x prefix, whether or not it had one"""
    key = key.strip()
    if not key.startswith('0x'):
        key = '0x' + key
    try:
        Account.from_key(key)
    except (ValueError, TypeError) as e:
        raise InvalidArguments(names, f"invalid format for Ethereum private key. {e}") from None
    return key


def validate_remote_path(path: str, names: str = "remote_path") -> str:
    if not path.startswith('/'):
        raise InvalidArguments(names, "invalid remote path, it MUST start with '/'")
    return path
