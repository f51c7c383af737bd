"""
StakeVault Core Module

Core functionality for the staking ledger including:
- Staking registry, reward engine and state machine
- Reference token contracts used as custody collaborators
- Configuration, logging and metrics
- HTTP API blueprints and the staking node entry point
"""

__all__ = []
