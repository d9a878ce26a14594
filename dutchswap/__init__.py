"""
dutchswap - Reverse Dutch Auction Swap

A single-asset descending-price auction registry:
- Seller escrows a fixed amount of a fungible asset
- Price decays linearly to zero over the auction duration
- First buyer paying the current price receives the escrow atomically
- Seller may cancel any time before settlement
"""

__version__ = "0.1.0"
