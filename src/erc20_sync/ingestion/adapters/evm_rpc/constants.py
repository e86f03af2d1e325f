"""EVM constants for ERC-20 Transfer logs."""

from eth_utils import keccak

TRANSFER_EVENT_SIGNATURE = "Transfer(address,address,uint256)"

# keccak256 of the Transfer event signature (topic0)
TRANSFER_TOPIC = "0x" + keccak(text=TRANSFER_EVENT_SIGNATURE).hex()

WORD_SIZE_BYTES = 32
ADDRESS_SIZE_BYTES = 20

# Substrings providers put in eth_getLogs errors when the window is too large
RANGE_LIMIT_PATTERNS = (
    "query returned more than",
    "too many results",
    "block range",
    "range too large",
    "range is too large",
    "limit exceeded",
    "response size",
    "exceed maximum block range",
)

# Limit errors that are about request volume, not window size (Infura also
# reports these under -32005)
RATE_LIMIT_PATTERNS = (
    "rate limit",
    "request rate",
    "rate exceeded",
    "request count",
    "requests per",
    "too many requests",
    "capacity",
)
