"""Nutrition analysis models and the remote response codec."""

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MealType(StrEnum):
    """Kind of eating event reported by the analysis service."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"
    DRINK = "drink"


class Micronutrient(BaseModel):
    """Single micronutrient amount for an item."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: float
    unit: str

    @property
    def display_text(self) -> str:
        return f"{self.name} {self.value:g}{self.unit}"


class NutritionItem(BaseModel):
    """Line item of a nutrition breakdown."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(alias="item")
    portion: str
    calories: float = Field(ge=0.0)
    protein: float = Field(ge=0.0)
    carbs: float = Field(ge=0.0)
    fats: float = Field(ge=0.0)
    micronutrients: list[Micronutrient] = Field(default_factory=list, alias="micros")


class NutritionAnalysis(BaseModel):
    """Structured macro and micronutrient breakdown for a meal."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    meal_type: MealType
    description: str
    total_calories: float = Field(ge=0.0)
    total_protein: float = Field(ge=0.0)
    total_carbs: float = Field(ge=0.0)
    total_fats: float = Field(ge=0.0)
    items: list[NutritionItem] = Field(default_factory=list, alias="breakdown")

    @field_validator("meal_type", mode="before")
    @classmethod
    def _normalize_meal_type(cls, value: object) -> object:
        # The service capitalises meal types ("Lunch").
        if isinstance(value, str):
            return value.strip().lower()
        return value


class PendingResult(BaseModel):
    """Analysis has not arrived yet."""

    model_config = ConfigDict(frozen=True)

    status: Literal["pending"] = "pending"


class SuccessResult(BaseModel):
    """Analysis arrived and was parsed."""

    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    analysis: NutritionAnalysis


class FailureResult(BaseModel):
    """The service answered but could not analyse the meal."""

    model_config = ConfigDict(frozen=True)

    status: Literal["failure"] = "failure"
    message: str
    unparseable_meal: str | None = None


NutritionResult = Annotated[
    PendingResult | SuccessResult | FailureResult, Field(discriminator="status")
]


class AnalysisResponse(BaseModel):
    """Wire format returned by the calculate-calories function.

    All four keys are always present; ``data`` is null on failure and
    ``error`` is null on success.
    """

    success: bool
    data: NutritionAnalysis | None = None
    error: str | None = None
    unparseable_meal: str | None = None

    def to_result(self) -> SuccessResult | FailureResult:
        """Convert the wire response into a meal result."""
        if self.success and self.data is not None:
            return SuccessResult(analysis=self.data)
        return FailureResult(
            message=self.error or "Unknown error",
            unparseable_meal=self.unparseable_meal,
        )
