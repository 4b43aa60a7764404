"""Registry contract ABI and web3 wiring."""

from typing import Any, Dict, List

from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.contract import AsyncContract

PROJECT_TUPLE_COMPONENTS: List[Dict[str, str]] = [
    {"name": "id", "type": "uint256"},
    {"name": "creator", "type": "address"},
    {"name": "name", "type": "string"},
    {"name": "description", "type": "string"},
    {"name": "githubUrl", "type": "string"},
    {"name": "metadataURI", "type": "string"},
    {"name": "aiScore", "type": "uint256"},
    {"name": "totalStaked", "type": "uint256"},
    {"name": "createdAt", "type": "uint256"},
    {"name": "funded", "type": "bool"},
    {"name": "active", "type": "bool"},
]

# Only the entries the agent touches
REGISTRY_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "projectCount",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "getProject",
        "stateMutability": "view",
        "inputs": [{"name": "projectId", "type": "uint256"}],
        "outputs": [
            {"name": "", "type": "tuple", "components": PROJECT_TUPLE_COMPONENTS}
        ],
    },
    {
        "type": "function",
        "name": "updateAIScore",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "projectId", "type": "uint256"},
            {"name": "score", "type": "uint256"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "ProjectSubmitted",
        "anonymous": False,
        "inputs": [
            {"name": "projectId", "type": "uint256", "indexed": True},
            {"name": "creator", "type": "address", "indexed": True},
            {"name": "name", "type": "string", "indexed": False},
            {"name": "timestamp", "type": "uint256", "indexed": False},
        ],
    },
]


def create_web3(rpc_url: str) -> AsyncWeb3:
    """Create an async web3 client for the given JSON-RPC endpoint."""
    return AsyncWeb3(AsyncHTTPProvider(rpc_url))


def create_registry_contract(w3: AsyncWeb3, address: str) -> AsyncContract:
    """Bind the registry ABI to its deployed address."""
    return w3.eth.contract(
        address=AsyncWeb3.to_checksum_address(address), abi=REGISTRY_ABI
    )
