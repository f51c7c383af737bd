"""
Reference ERC721 collection used as the staking asset custodian.

Supports the operations the staking ledger relies on:
- Ownership and balance queries
- Per-token approvals and operator approvals
- transferFrom / safeTransferFrom with receiver hooks
- Enumerable per-owner token lists
- Minting by the collection owner

``safe_transfer_from`` calls ``on_erc721_received`` on any receiver registered
for the destination address and rejects the transfer unless the receiver
returns the ERC721 receiver selector. That callback runs synchronously,
before the transfer returns to its caller.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from ..constants import ERC721_RECEIVED_SELECTOR, ZERO_ADDRESS
from ..protocols import IERC721Receiver
from ..vm.exceptions import VMExecutionError

logger = logging.getLogger(__name__)


@dataclass
class NFTEvent:
    """Represents an ERC721 event."""

    event_type: str  # "Transfer", "Approval", "ApprovalForAll"
    from_address: str
    to_address: str
    token_id: int
    approved: bool = False  # For ApprovalForAll
    timestamp: float = field(default_factory=time.time)


@dataclass
class ERC721Token:
    """
    Unique-asset collection implementing ``IAssetCustodian``.

    Security features:
    - Owner verification on all transfers
    - Receiver acknowledgement on safe transfers
    - Approval management
    """

    name: str
    symbol: str
    address: str = ""
    owner: str = ""

    owners: dict[int, str] = field(default_factory=dict)  # tokenId -> owner
    balances: dict[str, int] = field(default_factory=dict)  # owner -> count
    token_approvals: dict[int, str] = field(default_factory=dict)  # tokenId -> approved
    operator_approvals: dict[str, dict[str, bool]] = field(
        default_factory=dict
    )  # owner -> operator -> approved
    owner_tokens: dict[str, list[int]] = field(default_factory=dict)

    next_token_id: int = 1
    paused: bool = False
    events: list[NFTEvent] = field(default_factory=list)

    # address -> receiver hook, not serialized
    receivers: dict[str, IERC721Receiver] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if not self.address:
            addr_input = f"{self.name}{self.symbol}{time.time()}".encode()
            addr_hash = hashlib.sha3_256(addr_input).digest()
            self.address = f"0x{addr_hash[-20:].hex()}"
        self.address = self._normalize(self.address)
        if self.owner:
            self.owner = self._normalize(self.owner)

    # ==================== View Functions ====================

    def balance_of(self, owner: str) -> int:
        return self.balances.get(self._normalize(owner), 0)

    def owner_of(self, token_id: int) -> str:
        """
        Get the owner of a token.

        Raises:
            VMExecutionError: If token doesn't exist
        """
        owner = self.owners.get(token_id)
        if not owner:
            raise VMExecutionError(f"ERC721: token {token_id} does not exist")
        return owner

    def get_approved(self, token_id: int) -> str:
        self._require_minted(token_id)
        return self.token_approvals.get(token_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        owner_norm = self._normalize(owner)
        operator_norm = self._normalize(operator)
        return self.operator_approvals.get(owner_norm, {}).get(operator_norm, False)

    def tokens_of_owner(self, owner: str) -> list[int]:
        return list(self.owner_tokens.get(self._normalize(owner), []))

    def total_supply(self) -> int:
        return len(self.owners)

    # ==================== Receivers ====================

    def register_receiver(self, address: str, receiver: IERC721Receiver) -> None:
        """Register the hook invoked when ``address`` receives a safe transfer."""
        self.receivers[self._normalize(address)] = receiver

    # ==================== State-Changing Functions ====================

    def approve(self, caller: str, to: str, token_id: int) -> bool:
        self._require_not_paused()
        owner = self.owner_of(token_id)
        caller_norm = self._normalize(caller)
        to_norm = self._normalize(to)

        if to_norm == owner:
            raise VMExecutionError("ERC721: approval to current owner")

        if caller_norm != owner and not self.is_approved_for_all(owner, caller_norm):
            raise VMExecutionError("ERC721: approve caller is not owner nor approved")

        self.token_approvals[token_id] = to_norm
        self.events.append(NFTEvent("Approval", owner, to_norm, token_id))
        return True

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> bool:
        self._require_not_paused()
        caller_norm = self._normalize(caller)
        operator_norm = self._normalize(operator)

        if operator_norm == caller_norm:
            raise VMExecutionError("ERC721: approve to caller")

        self.operator_approvals.setdefault(caller_norm, {})[operator_norm] = approved
        self.events.append(
            NFTEvent("ApprovalForAll", caller_norm, operator_norm, 0, approved=approved)
        )
        return True

    def transfer_from(self, caller: str, from_addr: str, to_addr: str, token_id: int) -> bool:
        self._require_not_paused()
        self._transfer(caller, from_addr, to_addr, token_id)
        return True

    def safe_transfer_from(
        self,
        caller: str,
        from_addr: str,
        to_addr: str,
        token_id: int,
        data: bytes = b"",
    ) -> bool:
        """
        Transfer a token and require the recipient's acknowledgement.

        Args:
            caller: Message sender
            from_addr: Current owner
            to_addr: New owner
            token_id: Token ID
            data: Forwarded to the receiver hook

        Returns:
            True if successful

        Raises:
            VMExecutionError: If the transfer is invalid or the receiver rejects it
        """
        self._require_not_paused()
        self._transfer(caller, from_addr, to_addr, token_id)

        receiver = self.receivers.get(self._normalize(to_addr))
        if receiver is not None:
            try:
                selector = receiver.on_erc721_received(
                    self._normalize(caller), self._normalize(from_addr), token_id, data
                )
            except Exception:
                self._undo_transfer(from_addr, to_addr, token_id)
                raise
            if selector != ERC721_RECEIVED_SELECTOR:
                self._undo_transfer(from_addr, to_addr, token_id)
                raise VMExecutionError("ERC721: transfer to non ERC721Receiver implementer")

        return True

    def _transfer(self, caller: str, from_addr: str, to_addr: str, token_id: int) -> None:
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)
        caller_norm = self._normalize(caller)

        owner = self.owner_of(token_id)
        if owner != from_norm:
            raise VMExecutionError("ERC721: transfer from incorrect owner")

        if not self._is_approved_or_owner(caller_norm, token_id):
            raise VMExecutionError("ERC721: caller is not owner nor approved")

        if to_norm == ZERO_ADDRESS:
            raise VMExecutionError("ERC721: transfer to zero address")

        self.token_approvals.pop(token_id, None)
        self._move(from_norm, to_norm, token_id)
        self.events.append(NFTEvent("Transfer", from_norm, to_norm, token_id))

        logger.debug(
            "ERC721 transfer",
            extra={
                "event": "erc721.transfer",
                "collection": self.symbol,
                "token_id": token_id,
                "from": from_norm[:10],
                "to": to_norm[:10],
            }
        )

    def _move(self, from_norm: str, to_norm: str, token_id: int) -> None:
        self.balances[from_norm] = self.balances.get(from_norm, 1) - 1
        self.balances[to_norm] = self.balances.get(to_norm, 0) + 1
        self.owners[token_id] = to_norm
        if token_id in self.owner_tokens.get(from_norm, []):
            self.owner_tokens[from_norm].remove(token_id)
        self.owner_tokens.setdefault(to_norm, []).append(token_id)

    def _undo_transfer(self, from_addr: str, to_addr: str, token_id: int) -> None:
        """Revert a transfer whose receiver hook failed."""
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)
        if self.owners.get(token_id) == to_norm:
            self._move(to_norm, from_norm, token_id)
            self.events.pop()

    # ==================== Minting & Burning ====================

    def mint(self, minter: str, to: str, token_id: int | None = None) -> int:
        """
        Mint a new token to ``to``.

        Raises:
            VMExecutionError: If minter is not the collection owner or the id is taken
        """
        self._require_not_paused()
        self._require_owner(minter)

        to_norm = self._normalize(to)
        if to_norm == ZERO_ADDRESS:
            raise VMExecutionError("ERC721: mint to zero address")

        if token_id is None:
            token_id = self.next_token_id
            self.next_token_id += 1
        elif token_id in self.owners:
            raise VMExecutionError(f"ERC721: token {token_id} already minted")

        self.owners[token_id] = to_norm
        self.balances[to_norm] = self.balances.get(to_norm, 0) + 1
        self.owner_tokens.setdefault(to_norm, []).append(token_id)
        self.events.append(NFTEvent("Transfer", ZERO_ADDRESS, to_norm, token_id))

        logger.info(
            "ERC721 mint",
            extra={
                "event": "erc721.mint",
                "collection": self.symbol,
                "token_id": token_id,
                "to": to_norm[:10],
            }
        )
        return token_id

    # ==================== Admin Functions ====================

    def pause(self, caller: str) -> bool:
        """Pause token transfers."""
        self._require_owner(caller)
        self.paused = True
        return True

    def unpause(self, caller: str) -> bool:
        """Unpause token transfers."""
        self._require_owner(caller)
        self.paused = False
        return True

    # ==================== Helpers ====================

    def _normalize(self, address: str) -> str:
        return address.lower()

    def _require_minted(self, token_id: int) -> None:
        if token_id not in self.owners:
            raise VMExecutionError(f"ERC721: token {token_id} does not exist")

    def _require_owner(self, caller: str) -> None:
        if self._normalize(caller) != self.owner:
            raise VMExecutionError("ERC721: caller is not owner")

    def _require_not_paused(self) -> None:
        if self.paused:
            raise VMExecutionError("ERC721: token is paused")

    def _is_approved_or_owner(self, caller: str, token_id: int) -> bool:
        owner = self.owner_of(token_id)
        return (
            caller == owner
            or self.token_approvals.get(token_id) == caller
            or self.is_approved_for_all(owner, caller)
        )

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize collection state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "address": self.address,
            "owner": self.owner,
            "owners": dict(self.owners),
            "balances": dict(self.balances),
            "token_approvals": dict(self.token_approvals),
            "operator_approvals": {
                k: dict(v) for k, v in self.operator_approvals.items()
            },
            "owner_tokens": {k: list(v) for k, v in self.owner_tokens.items()},
            "next_token_id": self.next_token_id,
            "paused": self.paused,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ERC721Token":
        """Deserialize collection state from dictionary."""
        token = cls(
            name=data["name"],
            symbol=data["symbol"],
            address=data.get("address", ""),
            owner=data.get("owner", ""),
            paused=data.get("paused", False),
        )
        token.owners = {int(k): v for k, v in data.get("owners", {}).items()}
        token.balances = dict(data.get("balances", {}))
        token.token_approvals = {
            int(k): v for k, v in data.get("token_approvals", {}).items()
        }
        token.operator_approvals = {
            k: dict(v) for k, v in data.get("operator_approvals", {}).items()
        }
        token.owner_tokens = {k: list(v) for k, v in data.get("owner_tokens", {}).items()}
        token.next_token_id = data.get("next_token_id", 1)
        return token
