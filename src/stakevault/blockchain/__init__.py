"""
StakeVault Blockchain Module

Chain-level safety controls shared by the staking contracts:
- Emergency pause with persistent state
"""
