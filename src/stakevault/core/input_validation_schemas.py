from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, conint, constr


class StakeInput(BaseModel):
    asset_id: conint(ge=0)


class UnstakeInput(BaseModel):
    asset_id: conint(ge=0)
    force_with_tax: bool = False


class WithdrawInput(BaseModel):
    asset_id: conint(ge=0)
    force_with_tax: bool = False


class ClaimRewardInput(BaseModel):
    asset_id: conint(ge=0)


class ParameterUpdateInput(BaseModel):
    # Range checks happen in the contract, after authorization.
    value: int


class PauseInput(BaseModel):
    reason: Optional[constr(max_length=200)] = None


class AssetMintInput(BaseModel):
    to: constr(min_length=1, max_length=128)
    asset_id: Optional[conint(ge=0)] = None


class TokenMintInput(BaseModel):
    to: constr(min_length=1, max_length=128)
    amount: conint(gt=0)


class AssetApprovalInput(BaseModel):
    approved: bool = True


class TokenApprovalInput(BaseModel):
    amount: conint(ge=0)
