from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


class UsageUnavailableError(RuntimeError):
    """The payload carried no usage months (the portal usually puts an `error` field in instead)."""


class UsageMonth(BaseModel):
    # The portal adds/drops fields freely; only the ones we display are typed.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    policy_name: Optional[str] = Field(default=None, alias="policyName")
    start_date: Optional[str] = Field(default=None, alias="startDate")
    end_date: Optional[str] = Field(default=None, alias="endDate")
    total_usage: float = Field(default=0, alias="totalUsage")
    allowable_usage: float = Field(default=0, alias="allowableUsage")
    unit_of_measure: Optional[str] = Field(default="GB", alias="unitOfMeasure")


class UsageSummary(BaseModel):
    total_usage: float
    allowable_usage: float
    unit: str = "GB"

    @property
    def remaining(self) -> float:
        return self.allowable_usage - self.total_usage

    @property
    def percent_remaining(self) -> float:
        if not self.allowable_usage:
            return 0.0
        return (self.remaining / self.allowable_usage) * 100

    def format_human(self) -> str:
        pct = Decimal(str(self.percent_remaining)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
        return (
            f"{_num(self.total_usage)} {self.unit} / {_num(self.allowable_usage)} {self.unit} "
            f"({pct}% remaining)"
        )

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "totalUsage": _json_num(self.total_usage),
            "allowableUsage": _json_num(self.allowable_usage),
            "remaining": _json_num(self.remaining),
        }


def _json_num(value: float) -> Any:
    return int(value) if float(value).is_integer() else value


def _num(value: float) -> str:
    return str(_json_num(value))


def summarize(payload: Mapping[str, Any]) -> UsageSummary:
    """
    Summarize the current (last) billing month of a usage payload.
    """
    months = payload.get("usageMonths") or []
    if not isinstance(months, list) or not months:
        err = payload.get("error")
        raise UsageUnavailableError(str(err) if err else "The usage response contained no usage months.")

    latest = UsageMonth.model_validate(months[-1])
    return UsageSummary(
        total_usage=latest.total_usage,
        allowable_usage=latest.allowable_usage,
        unit=latest.unit_of_measure or "GB",
    )
