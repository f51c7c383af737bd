"""
Ledger API Blueprint

Access to the reference asset collection and reward token a staking node
hosts in-process. Minting requires the caller to own the collection or the
token; approvals are always granted to the staking contract on the caller's
behalf.
"""

from __future__ import annotations

import logging
from typing import Any, Tuple

from flask import Blueprint

from ..input_validation_schemas import (
    AssetApprovalInput,
    AssetMintInput,
    TokenApprovalInput,
    TokenMintInput,
)
from .base import (
    get_collection,
    get_contract,
    get_reward_token,
    parse_payload,
    require_caller,
    run_operation,
    success_response,
)

logger = logging.getLogger(__name__)

ledger_bp = Blueprint("ledger", __name__, url_prefix="/ledger")


# ==================== Views ====================


@ledger_bp.route("/info", methods=["GET"])
def get_ledger_info() -> Tuple[Any, int]:
    collection = get_collection()
    reward_token = get_reward_token()
    return success_response(
        {
            "collection": {
                "address": collection.address,
                "name": collection.name,
                "symbol": collection.symbol,
                "owner": collection.owner,
                "total_supply": collection.total_supply(),
            },
            "reward_token": {
                "address": reward_token.address,
                "name": reward_token.name,
                "symbol": reward_token.symbol,
                "owner": reward_token.owner,
                "total_supply": reward_token.total_supply,
            },
        }
    )


@ledger_bp.route("/assets/<int:asset_id>", methods=["GET"])
def get_asset(asset_id: int) -> Tuple[Any, int]:
    return run_operation(
        lambda: success_response(
            {"asset_id": asset_id, "owner": get_collection().owner_of(asset_id)}
        )
    )


@ledger_bp.route("/accounts/<account>", methods=["GET"])
def get_account(account: str) -> Tuple[Any, int]:
    """Balance, staking allowance and held assets of ``account``."""
    spender = get_contract().address
    collection = get_collection()
    reward_token = get_reward_token()
    return success_response(
        {
            "account": account.lower(),
            "balance": reward_token.balance_of(account),
            "allowance": reward_token.allowance(account, spender),
            "assets": collection.tokens_of_owner(account),
            "assets_approved": collection.is_approved_for_all(account, spender),
        }
    )


# ==================== Operations ====================


@ledger_bp.route("/assets/mint", methods=["POST"])
def mint_asset() -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(AssetMintInput, "mint_asset")
    if parse_error:
        return parse_error

    def operation():
        asset_id = get_collection().mint(caller, model.to, model.asset_id)
        return success_response({"asset_id": asset_id, "owner": model.to.lower()}, status=201)

    return run_operation(operation)


@ledger_bp.route("/assets/approve", methods=["POST"])
def approve_assets() -> Tuple[Any, int]:
    """Let the staking contract move every asset the caller holds."""
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(AssetApprovalInput, "approve_assets")
    if parse_error:
        return parse_error

    def operation():
        spender = get_contract().address
        get_collection().set_approval_for_all(caller, spender, model.approved)
        return success_response({"owner": caller, "operator": spender, "approved": model.approved})

    return run_operation(operation)


@ledger_bp.route("/tokens/mint", methods=["POST"])
def mint_tokens() -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(TokenMintInput, "mint_tokens")
    if parse_error:
        return parse_error

    def operation():
        reward_token = get_reward_token()
        reward_token.mint(caller, model.to, model.amount)
        return success_response(
            {"to": model.to.lower(), "balance": reward_token.balance_of(model.to)}, status=201
        )

    return run_operation(operation)


@ledger_bp.route("/tokens/approve", methods=["POST"])
def approve_tokens() -> Tuple[Any, int]:
    """Set the staking contract's reward-token allowance over the caller's balance."""
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(TokenApprovalInput, "approve_tokens")
    if parse_error:
        return parse_error

    def operation():
        spender = get_contract().address
        get_reward_token().approve(caller, spender, model.amount)
        return success_response({"owner": caller, "spender": spender, "amount": model.amount})

    return run_operation(operation)
