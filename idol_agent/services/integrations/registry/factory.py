from typing import Tuple

from eth_account import Account

from idol_agent.config import RegistryConfig

from .base import create_registry_contract, create_web3
from .reader import RegistryReader
from .writer import RegistryWriter


def build_registry_clients(
    registry_config: RegistryConfig,
) -> Tuple[RegistryReader, RegistryWriter]:
    """Create a reader and a signing writer sharing one RPC connection."""
    w3 = create_web3(registry_config.rpc_url)
    contract = create_registry_contract(w3, registry_config.address)
    account = Account.from_key(registry_config.private_key)

    reader = RegistryReader(
        contract, timeout_seconds=registry_config.read_timeout_seconds
    )
    writer = RegistryWriter(
        w3,
        contract,
        account,
        submit_timeout_seconds=registry_config.submit_timeout_seconds,
        receipt_timeout_seconds=registry_config.receipt_timeout_seconds,
    )
    return reader, writer
