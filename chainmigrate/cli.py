"""
chainmigrate command line

    chainmigrate migrate   deploy every declaration in the migrations directory
    chainmigrate upload    upload a file to IPFS and register its CID
"""

import json
import logging
import signal
from typing import List, Optional
from urllib.parse import urlsplit

import click

from .backend import Web3Backend, connect
from .cids_owners import CIDsOwners, upload_and_register
from .config import (Settings, validate_address, validate_endpoint,
                     validate_private_key, validate_remote_path)
from .errors import ExternalServiceError, InvalidArguments, InvalidStepDeclaration
from .ipfs import IpfsClient
from .loader import MigrationOutcome, run_migrations
from .registry import BuildArtifactRegistry
from .sequencer import CancellationToken, summarize

logger = logging.getLogger(__name__)

EXIT_STEP_FAILED = 1
EXIT_USAGE_ERROR = 2

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class CLIError(click.ClickException):
    """Error shown to the user with a specific exit code"""

    def __init__(self, message: str, exit_code: int = EXIT_USAGE_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT, handlers=handlers)


def build_backend(settings: Settings) -> Web3Backend:
    """Connect to the configured node and return a backend for it"""
    try:
        rpc_url = validate_endpoint(settings.rpc_url, "rpc_url", require_port=False)
        private_key = validate_private_key(settings.private_key) if settings.private_key else None
        w3 = connect(rpc_url, poa=settings.poa_middleware)
    except (InvalidArguments, ExternalServiceError) as e:
        raise CLIError(str(e)) from e

    return Web3Backend(
        w3,
        private_key=private_key,
        chain_id=settings.chain_id,
        gas_limit=settings.gas_limit,
        receipt_timeout=settings.receipt_timeout,
    )


def write_record(path: str, outcomes: List[MigrationOutcome], settings: Settings) -> None:
    """Write the addresses of everything deployed in this run as JSON"""
    contracts = {}
    transactions = {}
    for outcome in outcomes:
        for result in outcome.results:
            if result.ok:
                contracts[result.name] = result.contract.address
                transactions[result.name] = result.contract.tx_hash

    # Hosted RPC URLs carry API keys in the path or query; keep only the host
    rpc = urlsplit(settings.rpc_url)
    record = {
        'network': {'host': rpc.hostname, 'chain_id': settings.chain_id},
        'contracts': contracts,
        'transactions': transactions,
    }
    with open(path, 'w') as f:
        json.dump(record, f, indent=2)
    logger.info(f"Deployment record written to {path}")


def install_interrupt_handler(token: CancellationToken):
    """Cancel the run on the first SIGINT; a second one reaches the previous handler"""
    def _interrupt(signum, frame):
        logger.warning("Interrupted: stopping after the current step, press Ctrl-C again to abort")
        token.cancel()
        signal.signal(signal.SIGINT, previous_handler)

    previous_handler = signal.signal(signal.SIGINT, _interrupt)
    return previous_handler


@click.group()
@click.option('--env-file', type=click.Path(dir_okay=False), default=None,
              help="Load configuration from this .env file")
@click.pass_context
def cli(ctx: click.Context, env_file: Optional[str]) -> None:
    """Deploy compiled contracts in declaration order."""
    try:
        settings = Settings.from_env(env_file)
    except InvalidArguments as e:
        raise CLIError(str(e)) from e
    configure_logging(settings.log_level, settings.log_file)
    ctx.obj = settings


@cli.command()
@click.option('--migrations-dir', type=click.Path(file_okay=False), help="Directory of declaration files")
@click.option('--build-dir', type=click.Path(file_okay=False), help="Directory of compiled artifacts")
@click.option('--rpc-url', help="Ethereum JSON-RPC endpoint")
@click.option('--chain-id', type=int, help="Chain id used when signing")
@click.option('--record', type=click.Path(dir_okay=False), help="Write deployed addresses to this JSON file")
@click.pass_obj
def migrate(settings: Settings, migrations_dir: Optional[str], build_dir: Optional[str],
            rpc_url: Optional[str], chain_id: Optional[int], record: Optional[str]) -> None:
    """Run every migration declaration in order."""
    settings = settings.override(migrations_dir=migrations_dir, build_dir=build_dir,
                                 rpc_url=rpc_url, chain_id=chain_id)
    backend = build_backend(settings)
    registry = BuildArtifactRegistry(settings.build_dir)

    token = CancellationToken()
    previous_handler = install_interrupt_handler(token)
    try:
        outcomes = run_migrations(settings.migrations_dir, registry, backend, cancel=token)
    except InvalidStepDeclaration as e:
        raise CLIError(str(e)) from e
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    results = [result for outcome in outcomes for result in outcome.results]
    for outcome in outcomes:
        click.echo(outcome.migration.name)
        for result in outcome.results:
            click.echo(f"  {result}")
    click.echo(summarize(results))

    if record:
        write_record(record, outcomes, settings)

    if not all(outcome.ok for outcome in outcomes):
        raise CLIError("migration failed", exit_code=EXIT_STEP_FAILED)


@cli.command()
@click.argument('filepath', type=click.Path(dir_okay=False))
@click.argument('remote_path', required=False)
@click.option('--contract-address', help="Address of the deployed CIDsOwners contract")
@click.option('--ipfs-url', help="IPFS HTTP API endpoint")
@click.option('--rpc-url', help="Ethereum JSON-RPC endpoint")
@click.option('--chain-id', type=int, help="Chain id used when signing")
@click.pass_obj
def upload(settings: Settings, filepath: str, remote_path: Optional[str], contract_address: Optional[str],
           ipfs_url: Optional[str], rpc_url: Optional[str], chain_id: Optional[int]) -> None:
    """Upload FILEPATH to IPFS and register its CID to the owner's account."""
    settings = settings.override(cids_owners_address=contract_address, ipfs_url=ipfs_url,
                                 rpc_url=rpc_url, chain_id=chain_id)
    try:
        if not settings.cids_owners_address:
            raise InvalidArguments("contract_address", "no CIDsOwners address configured")
        if not settings.private_key:
            raise InvalidArguments("private_key", "PRIVATE_KEY is required to register a CID")
        address = validate_address(settings.cids_owners_address, "contract_address")
        private_key = validate_private_key(settings.private_key)
        ipfs_endpoint = validate_endpoint(settings.ipfs_url, "ipfs_url")
        rpc_endpoint = validate_endpoint(settings.rpc_url, "rpc_url", require_port=False)
        if remote_path is not None:
            validate_remote_path(remote_path)
    except InvalidArguments as e:
        raise CLIError(str(e)) from e

    try:
        w3 = connect(rpc_endpoint, poa=settings.poa_middleware)
        contract = CIDsOwners(w3, address, chain_id=settings.chain_id,
                              receipt_timeout=settings.receipt_timeout)
        summary = upload_and_register(IpfsClient(ipfs_endpoint), contract, filepath,
                                      private_key, remote_path=remote_path)
    except InvalidArguments as e:
        raise CLIError(str(e)) from e
    except ExternalServiceError as e:
        logger.error(f"Upload failed: {e}")
        raise CLIError(str(e), exit_code=EXIT_STEP_FAILED) from e

    click.echo(str(summary))


def main() -> None:
    cli(prog_name='chainmigrate')


if __name__ == '__main__':
    main()
