"""
StakeVault Reference Contracts.

Token implementations the staking contract uses as collaborators:
- ERC20: Fungible reward token
- ERC721: Unique-asset collection with receiver hooks
"""

from .erc20 import UINT256_MAX, ERC20Token, TokenEvent
from .erc721 import ERC721Token, NFTEvent

__all__ = [
    "ERC20Token",
    "ERC721Token",
    "NFTEvent",
    "TokenEvent",
    "UINT256_MAX",
]
