"""
Staking Admin API Blueprint

Privileged staking operations: parameter updates, pausing and the emergency
withdrawals. The caller named in the X-Caller-Address header must hold the
matching role; the contract checks it and a missing role maps to 403.
"""

from __future__ import annotations

import logging
from typing import Any, Tuple

from flask import Blueprint

from ..input_validation_schemas import ParameterUpdateInput, PauseInput
from .base import (
    error_response,
    get_contract,
    parse_payload,
    require_caller,
    run_operation,
    success_response,
)

logger = logging.getLogger(__name__)

admin_bp = Blueprint("staking_admin", __name__, url_prefix="/staking/admin")

# Route name -> contract setter. Durations are given in hours.
PARAMETER_SETTERS = {
    "stake-limit": "set_stake_limit",
    "reward-per-block": "set_reward_per_block",
    "early-exit-tax": "set_early_exit_tax",
    "carry-amount": "set_carry_amount",
    "staking-end-time": "set_staking_end_time",
    "unbonding-period": "set_unbonding_period",
}


@admin_bp.route("/parameters/<parameter>", methods=["POST"])
def update_parameter(parameter: str) -> Tuple[Any, int]:
    setter = PARAMETER_SETTERS.get(parameter)
    if setter is None:
        return error_response(
            f"Unknown staking parameter: {parameter}",
            status=404,
            code="unknown_parameter",
        )
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(ParameterUpdateInput, "update_parameter")
    if parse_error:
        return parse_error

    def operation():
        contract = get_contract()
        getattr(contract, setter)(caller, model.value)
        return success_response({"parameter": parameter, "info": contract.get_info()})

    return run_operation(operation)


@admin_bp.route("/pause", methods=["POST"])
def pause() -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(PauseInput, "pause")
    if parse_error:
        return parse_error

    def operation():
        contract = get_contract()
        if model.reason:
            contract.pause(caller, model.reason)
        else:
            contract.pause(caller)
        return success_response({"paused": True, "status": contract.pause_gate.get_status()})

    return run_operation(operation)


@admin_bp.route("/unpause", methods=["POST"])
def unpause() -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error
    model, parse_error = parse_payload(PauseInput, "unpause")
    if parse_error:
        return parse_error

    def operation():
        contract = get_contract()
        if model.reason:
            contract.unpause(caller, model.reason)
        else:
            contract.unpause(caller)
        return success_response({"paused": False})

    return run_operation(operation)


@admin_bp.route("/reward-pool/withdraw", methods=["POST"])
def withdraw_reward_pool() -> Tuple[Any, int]:
    """Send the reward pool, minus carry deposits, to the caller."""
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error

    def operation():
        amount = get_contract().force_withdraw_reward_pool(caller)
        return success_response({"recipient": caller, "amount": amount})

    return run_operation(operation)


@admin_bp.route("/assets/<int:asset_id>/withdraw", methods=["POST"])
def withdraw_asset(asset_id: int) -> Tuple[Any, int]:
    caller, auth_error = require_caller()
    if auth_error:
        return auth_error

    def operation():
        recipient = get_contract().force_withdraw_asset(caller, asset_id)
        return success_response({"asset_id": asset_id, "recipient": recipient})

    return run_operation(operation)
