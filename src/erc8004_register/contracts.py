"""
ERC-8004 Identity Registry contract surface.

Only the two members this tool touches: ``register(string)`` and the
``Registered`` event.
"""

from .utils import event_topic

REGISTER_FUNCTION_SIGNATURE = "register(string)"

REGISTERED_EVENT_SIGNATURE = "Registered(uint256,string,address)"

# topic0 of Registered(uint256 indexed agentId, string agentURI, address indexed owner)
REGISTERED_TOPIC = event_topic(REGISTERED_EVENT_SIGNATURE)

IDENTITY_REGISTRY_ABI = [
    {
        "type": "function",
        "name": "register",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "agentURI", "type": "string"}],
        "outputs": [{"name": "agentId", "type": "uint256"}],
    },
    {
        "type": "event",
        "name": "Registered",
        "anonymous": False,
        "inputs": [
            {"name": "agentId", "type": "uint256", "indexed": True},
            {"name": "agentURI", "type": "string", "indexed": False},
            {"name": "owner", "type": "address", "indexed": True},
        ],
    },
]
