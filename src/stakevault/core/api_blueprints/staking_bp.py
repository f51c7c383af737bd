"""
Staking API Blueprint

Read-only views of the staking ledger and the user-facing staking operations.
Mutating routes act on behalf of the caller named in the X-Caller-Address header.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Tuple

from flask import Blueprint

from ..input_validation_schemas import (
    ClaimRewardInput,
    StakeInput,
    UnstakeInput,
    WithdrawInput,
)
from .base import (
    get_contract,
    parse_payload,
    require_caller,
    run_operation,
    success_response,
)

logger = logging.getLogger(__name__)

staking_bp = Blueprint("staking", __name__, url_prefix="/staking")


def _entry_payload(asset_id: int) -> Dict[str, Any]:
    entry = get_contract().stake_info(asset_id)
    return {"asset_id": asset_id, **entry.to_dict()}


# ==================== Views ====================


@staking_bp.route("/info", methods=["GET"])
def get_info() -> Tuple[Any, int]:
    """Contract configuration and counters."""
    return success_response(get_contract().get_info())


@staking_bp.route("/stakes/<int:asset_id>", methods=["GET"])
def get_stake(asset_id: int) -> Tuple[Any, int]:
    return run_operation(lambda: success_response(_entry_payload(asset_id)))


@staking_bp.route("/stakes/<int:asset_id>/pending-reward", methods=["GET"])
def get_pending_reward(asset_id: int) -> Tuple[Any, int]:
    return run_operation(
        lambda: success_response(
            {"asset_id": asset_id, "pending_reward": get_contract().pending_reward(asset_id)}
        )
    )


@staking_bp.route("/stakes/<int:asset_id>/unbonding", methods=["GET"])
def get_unbonding(asset_id: int) -> Tuple[Any, int]:
    return run_operation(
        lambda: success_response(
            {"asset_id": asset_id, "unbonding_at": get_contract().unbonding_timestamp(asset_id)}
        )
    )


@staking_bp.route("/owners/<owner>/stakes", methods=["GET"])
def get_owner_stakes(owner: str) -> Tuple[Any, int]:
    contract = get_contract()
    return success_response(
        {
            "owner": owner.lower(),
            "assets": contract.list_stakes_by_owner(owner),
            "count": contract.stake_count(owner),
        }
    )


@staking_bp.route("/owners", methods=["GET"])
def get_owners() -> Tuple[Any, int]:
    return success_response({"owners": get_contract().tracked_owners()})


@staking_bp.route("/assets", methods=["GET"])
def get_assets() -> Tuple[Any, int]:
    return success_response({"assets": get_contract().tracked_assets()})


# ==================== Operations ====================


@staking_bp.route("/stake", methods=["POST"])
def stake() -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(StakeInput, "stake")
    if parse_error:
        return parse_error

    def operation():
        get_contract().stake(caller, model.asset_id)
        return success_response(_entry_payload(model.asset_id), status=201)

    return run_operation(operation)


@staking_bp.route("/unstake", methods=["POST"])
def unstake() -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(UnstakeInput, "unstake")
    if parse_error:
        return parse_error

    def operation():
        get_contract().unstake(caller, model.asset_id, model.force_with_tax)
        return success_response(_entry_payload(model.asset_id))

    return run_operation(operation)


@staking_bp.route("/withdraw", methods=["POST"])
def withdraw() -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(WithdrawInput, "withdraw")
    if parse_error:
        return parse_error

    def operation():
        get_contract().withdraw(caller, model.asset_id, model.force_with_tax)
        return success_response({"asset_id": model.asset_id, "withdrawn": True})

    return run_operation(operation)


@staking_bp.route("/claim", methods=["POST"])
def claim() -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(ClaimRewardInput, "claim")
    if parse_error:
        return parse_error

    def operation():
        amount = get_contract().claim_reward(caller, model.asset_id)
        return success_response({"asset_id": model.asset_id, "amount": amount})

    return run_operation(operation)


@staking_bp.route("/claim-all", methods=["POST"])
def claim_all() -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error

    def operation():
        amount = get_contract().claim_all_rewards(caller)
        return success_response({"owner": caller, "amount": amount})

    return run_operation(operation)
