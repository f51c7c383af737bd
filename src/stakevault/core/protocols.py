"""
StakeVault - Collaborator Protocol Interfaces

The staking contract depends only on these narrow capability contracts,
never on a concrete token, authorization or pause implementation.
Using Protocol (from typing) allows for structural subtyping, enabling:
- Mock implementations in tests
- Dependency injection without class inheritance
- Swapping the reference ERC20/ERC721 contracts for chain-backed clients

Security Notes:
- Transfer methods may call back into the staking contract (receiver hooks);
  the contract guards its mutating entry points against re-entry
- Implementations must raise on failure rather than return False
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IAssetCustodian(Protocol):
    """
    Protocol for the unique-asset collection (ERC721-like).

    The staking contract queries ownership before a stake and moves assets
    in and out of its own custody address.
    """

    def owner_of(self, token_id: int) -> str:
        """
        Get the current holder of an asset.

        Args:
            token_id: Asset identifier

        Returns:
            Holder address

        Raises:
            Exception: If the asset does not exist
        """
        ...

    def get_approved(self, token_id: int) -> str:
        """Address approved to move a single asset."""
        ...

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        """Whether ``operator`` may move every asset of ``owner``."""
        ...

    def safe_transfer_from(
        self,
        caller: str,
        from_addr: str,
        to_addr: str,
        token_id: int,
        data: bytes = b"",
    ) -> bool:
        """
        Move an asset, invoking the recipient's receiver hook if it has one.

        Args:
            caller: Operator executing the transfer (must be owner or approved)
            from_addr: Current holder
            to_addr: New holder
            token_id: Asset identifier
            data: Opaque payload forwarded to the receiver hook

        Returns:
            True if successful

        Security:
            - The receiver hook runs before this call returns
        """
        ...


@runtime_checkable
class IRewardLedger(Protocol):
    """
    Protocol for the fungible reward token (ERC20-like).

    Used for the carry deposit, the early-exit tax and reward payouts.
    """

    def balance_of(self, account: str) -> int:
        """Get the token balance of an account."""
        ...

    def allowance(self, owner: str, spender: str) -> int:
        """Amount ``spender`` may still move out of ``owner``'s balance."""
        ...

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Move tokens out of the sender's own balance.

        Returns:
            True if successful
        """
        ...

    def transfer_from(
        self, spender: str, from_addr: str, to_addr: str, amount: int
    ) -> bool:
        """
        Move tokens using an allowance granted to ``spender``.

        Returns:
            True if successful
        """
        ...


@runtime_checkable
class IERC721Receiver(Protocol):
    """Protocol for contracts that accept unique assets via safe transfer."""

    def on_erc721_received(
        self, operator: str, from_addr: str, token_id: int, data: bytes
    ) -> str:
        """
        Acknowledge an incoming asset.

        Returns:
            The ERC721 receiver selector to accept the transfer
        """
        ...


@runtime_checkable
class IAuthorizer(Protocol):
    """Protocol for the identity/authorization collaborator."""

    def is_authorized(self, caller: str, action: str) -> bool:
        """
        Check whether ``caller`` may perform a privileged ``action``.

        Returns:
            True if the caller holds a role granting the action
        """
        ...


@runtime_checkable
class IPauseGate(Protocol):
    """Protocol for the pause gate consulted by every mutating operation."""

    def is_paused(self) -> bool:
        """Return True while user-facing operations are suspended."""
        ...

    def pause_operations(self, caller_address: str, reason: str = "") -> None:
        """Close the gate."""
        ...

    def unpause_operations(self, caller_address: str, reason: str = "") -> None:
        """Open the gate."""
        ...


@runtime_checkable
class IChainClock(Protocol):
    """
    Protocol for the time source.

    Both values must be non-decreasing across calls.
    """

    def current_timestamp(self) -> int:
        """Get the current chain time in seconds."""
        ...

    def current_block(self) -> int:
        """Get the current block height."""
        ...
