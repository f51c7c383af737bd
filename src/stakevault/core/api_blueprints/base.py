"""
Base utilities for API Blueprints

Provides common dependencies and helper functions shared across blueprints.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Tuple, Type

from flask import g, jsonify, request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..staking_exceptions import (
    EntryNotFound,
    StakingError,
    SystemPaused,
    Unauthorized,
    is_recoverable_error,
)
from ..vm.exceptions import VMError

logger = logging.getLogger(__name__)

CALLER_HEADER = "X-Caller-Address"


def get_api_context() -> Dict[str, Any]:
    """Get the API context containing the contract and clock.

    The context is stored in Flask's g object during request setup.
    """
    return g.get("api_context", {})


def get_contract() -> Any:
    """Get the staking contract from context."""
    return get_api_context().get("contract")


def get_clock() -> Optional[Any]:
    return get_api_context().get("clock")


def get_collection() -> Optional[Any]:
    """Reference asset collection, when the app serves one."""
    return get_api_context().get("collection")


def get_reward_token() -> Optional[Any]:
    return get_api_context().get("reward_token")


def get_caller() -> Optional[str]:
    """Caller identity set by the authenticating gateway, lowercased."""
    caller = (request.headers.get(CALLER_HEADER) or "").strip()
    return caller.lower() or None


def success_response(payload: Dict[str, Any], status: int = 200) -> Tuple[Any, int]:
    """Return a success payload with consistent structure."""
    body = {"success": True, **payload}
    return jsonify(body), status


def error_response(
    message: str,
    status: int = 400,
    code: str = "bad_request",
    context: Optional[Dict[str, Any]] = None,
    event_type: str = "staking_api_error",
) -> Tuple[Any, int]:
    """Return an error response and log it."""
    level = logging.ERROR if status >= 500 else logging.WARNING
    logger.log(
        level,
        message,
        extra={"event": event_type, "code": code, "status": status, **(context or {})},
    )
    return jsonify({"success": False, "error": message, "code": code}), status


def staking_error_response(error: StakingError) -> Tuple[Any, int]:
    """Map a staking failure to an HTTP status."""
    if isinstance(error, Unauthorized):
        status = 403
    elif isinstance(error, SystemPaused):
        status = 503
    elif isinstance(error, EntryNotFound):
        status = 404
    else:
        status = 400
    return error_response(
        error.message,
        status=status,
        code=error.code,
        context={"details": error.details, "recoverable": is_recoverable_error(error)},
        event_type="staking_api_rejected",
    )


def require_caller() -> Tuple[Optional[str], Optional[Tuple[Any, int]]]:
    """Return the caller, or an error response if the header is missing."""
    caller = get_caller()
    if caller is None:
        return None, error_response(
            f"{CALLER_HEADER} header required",
            status=401,
            code="caller_required",
        )
    return caller, None


def run_operation(operation: Callable[[], Any]) -> Tuple[Any, int] | Any:
    """Run a route body, mapping staking and ledger failures to error responses."""
    try:
        return operation()
    except StakingError as exc:
        return staking_error_response(exc)
    except VMError as exc:
        return error_response(
            str(exc),
            status=400,
            code="ledger_rejected",
            event_type="ledger_api_rejected",
        )


def parse_payload(model: Type[BaseModel], function: str):
    """Validate the JSON body against ``model``; returns ``(model, error_response)``."""
    payload = request.get_json(silent=True) or {}
    try:
        return model.model_validate(payload), None
    except PydanticValidationError as exc:
        logger.warning(
            "PydanticValidationError in %s",
            function,
            extra={
                "event": "staking_api_invalid_payload",
                "error": str(exc),
                "function": function,
            },
        )
        return None, error_response(
            "Invalid staking request",
            status=400,
            code="invalid_payload",
            context={"errors": exc.errors(include_url=False, include_context=False)},
        )
