"""Transformation Layer: validate and decode raw logs before persistence.

```
RawLog (eth_getLogs envelope, untrusted)
    ↓
TransferDecoder
    - topic count / signature / word sizes checked
    - from/to from topics 1 and 2, value from data
    - malformed logs skipped and counted
    ↓
TransferEvent (validated, immutable)
```
"""

from .decoders import DecodeResult, TransferDecoder

__all__ = ["DecodeResult", "TransferDecoder"]
