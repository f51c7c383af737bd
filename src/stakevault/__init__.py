"""
StakeVault - Collectible Staking Ledger

Lock a unique collectible into custody and accrue fungible rewards per block,
with an unbonding period before withdrawal and a taxed early-exit path.

Main Components:
- Staking: stake registry, reward accrual engine and the staking state machine
- Contracts: reference ERC20 reward token and ERC721 collection
- Security: role-based authorization for administrative actions
- Blockchain: persistent emergency pause gate
- API: Flask blueprints exposing the staking operations
"""

__version__ = "0.1.0"
__author__ = "StakeVault Development Team"

__all__ = []
