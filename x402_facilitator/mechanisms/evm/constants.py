"""EVM mechanism constants - typed data, ABIs, receipt status codes."""

# EIP-712 domain used for x402 authorizations
DOMAIN_NAME = "x402 Payment"
DOMAIN_VERSION = "1"

PRIMARY_TYPE = "Authorization"

AUTHORIZATION_TYPES = {
    "Authorization": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "validAfter", "type": "uint256"},
        {"name": "validBefore", "type": "uint256"},
        {"name": "nonce", "type": "bytes32"},
    ]
}

# Transaction status
TX_STATUS_SUCCESS = 1
TX_STATUS_FAILED = 0

# Default validity period (1 hour in seconds)
DEFAULT_VALIDITY_PERIOD = 3600

# Default validity buffer (seconds before now for clock skew)
DEFAULT_VALIDITY_BUFFER = 60

# Gas estimate reported by /verify for a record + mark-settled round trip
DEFAULT_SETTLEMENT_GAS = 300000

# keccak256("Transfer(address,address,uint256)")
ERC20_TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
