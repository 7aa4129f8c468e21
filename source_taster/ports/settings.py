"""
Settings consumed by the matching core and the verification orchestrator.

Settings are validated here, at the boundary, with pydantic models whose wire shape uses camelCase keys
(`fieldConfigurations`, `normalizationRules`, `earlyTermination`, ...). The matching core assumes validated settings
and never re-checks them.
"""

import json
from pathlib import Path
from typing import Dict, List, Mapping, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from aletk.utils import get_logger

from source_taster.logic.enums import FailurePolicy, MatchingMode, NormalizationRule


lgr = get_logger(__name__)


# ============================================================================
# Helpers
# ============================================================================


def validate_field_weights(field_configurations: Mapping[str, "FieldConfig"]) -> bool:
    """
    Whether the weights of the enabled fields sum to exactly 100.
    """
    total = sum(config.weight for config in field_configurations.values() if config.enabled)
    return total == 100


# ============================================================================
# Matching settings
# ============================================================================


class FieldConfig(BaseModel):
    """
    Enable flag and weight (0-100) of one metadata field.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool
    weight: float = Field(ge=0, le=100)


class MatchingStrategy(BaseModel):
    """
    Which normalization rules are applied before fields are compared.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mode: MatchingMode = MatchingMode.BALANCED
    normalization_rules: List[NormalizationRule] = Field(alias="normalizationRules")


class MatchQualityThresholds(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    exact_match_threshold: int = Field(default=95, ge=0, le=100, alias="exactMatchThreshold")
    high_match_threshold: int = Field(default=70, ge=0, le=100, alias="highMatchThreshold")

    @model_validator(mode="after")
    def _check_order(self) -> Self:
        if self.high_match_threshold > self.exact_match_threshold:
            raise ValueError("The high match threshold cannot be greater than the exact match threshold.")
        return self


class MatchingConfig(BaseModel):
    """
    Per-field configuration. Enabled weights must sum to exactly 100, and at least one field must be enabled.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    field_configurations: Dict[str, FieldConfig] = Field(alias="fieldConfigurations")
    match_thresholds: MatchQualityThresholds = Field(default_factory=MatchQualityThresholds, alias="matchThresholds")

    @classmethod
    def validate_field_configurations(cls, field_configurations: Dict[str, FieldConfig]) -> Dict[str, FieldConfig]:
        if not any(config.enabled for config in field_configurations.values()):
            raise ValueError("At least one field must be enabled.")

        if not validate_field_weights(field_configurations):
            raise ValueError("Enabled field weights must sum to exactly 100.")

        return field_configurations

    @model_validator(mode="after")
    def _check_field_configurations(self) -> Self:
        self.validate_field_configurations(self.field_configurations)
        return self


class MatchingSettings(BaseModel):
    """
    Everything `match_reference` needs: which fields to compare and how to normalize them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    matching_strategy: MatchingStrategy = Field(alias="matchingStrategy")
    matching_config: MatchingConfig = Field(alias="matchingConfig")

    @property
    def field_configurations(self) -> Dict[str, FieldConfig]:
        return self.matching_config.field_configurations

    @property
    def normalization_rules(self) -> List[NormalizationRule]:
        return self.matching_strategy.normalization_rules


# ============================================================================
# Verification settings
# ============================================================================


class EarlyTerminationConfig(BaseModel):
    """
    Stop searching further sources for a reference once its best score reaches the threshold.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    threshold: int = Field(default=85, ge=0, le=100)


class VerificationSettings(BaseModel):
    """
    Settings of a verification run.

    Args:
        matching_settings: MatchingSettings
        sources: List[str], source names in priority order
        early_termination: EarlyTerminationConfig
        failure_policy: FailurePolicy, whether a failing search stops only its reference or the whole run
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    matching_settings: MatchingSettings = Field(alias="matchingSettings")
    sources: List[str]
    early_termination: EarlyTerminationConfig = Field(default_factory=EarlyTerminationConfig, alias="earlyTermination")
    failure_policy: FailurePolicy = Field(default=FailurePolicy.ISOLATE, alias="failurePolicy")

    @classmethod
    def validate_sources(cls, sources: List[str]) -> List[str]:
        if not sources:
            raise ValueError("At least one search source must be enabled.")

        if any(not source.strip() for source in sources):
            raise ValueError("Source names cannot be empty.")

        if len(set(sources)) != len(sources):
            raise ValueError(f"Duplicate source names in {sources}.")

        return sources

    @model_validator(mode="after")
    def _check_sources(self) -> Self:
        self.validate_sources(self.sources)
        return self


# ============================================================================
# Defaults
# ============================================================================


DEFAULT_FIELD_CONFIGURATIONS: Dict[str, FieldConfig] = {
    "title": FieldConfig(enabled=True, weight=25),
    "author": FieldConfig(enabled=True, weight=20),
    "issued": FieldConfig(enabled=True, weight=5),
    "DOI": FieldConfig(enabled=True, weight=15),
    "arxivId": FieldConfig(enabled=True, weight=8),
    "PMID": FieldConfig(enabled=True, weight=3),
    "PMCID": FieldConfig(enabled=True, weight=2),
    "ISBN": FieldConfig(enabled=True, weight=1),
    "ISSN": FieldConfig(enabled=True, weight=1),
    "container-title": FieldConfig(enabled=True, weight=10),
    "volume": FieldConfig(enabled=True, weight=5),
    "issue": FieldConfig(enabled=True, weight=3),
    "page": FieldConfig(enabled=True, weight=2),
}

MATCHING_MODE_PRESETS: Dict[MatchingMode, List[NormalizationRule]] = {
    MatchingMode.STRICT: [],
    MatchingMode.BALANCED: list(NormalizationRule),
    MatchingMode.CUSTOM: [],
}

DEFAULT_MATCHING_SETTINGS = MatchingSettings(
    matching_strategy=MatchingStrategy(
        mode=MatchingMode.BALANCED,
        normalization_rules=MATCHING_MODE_PRESETS[MatchingMode.BALANCED],
    ),
    matching_config=MatchingConfig(field_configurations=DEFAULT_FIELD_CONFIGURATIONS),
)


# ============================================================================
# Loading
# ============================================================================


def load_verification_settings(path: str | Path) -> VerificationSettings:
    """
    Read verification settings from a JSON file. Matching settings default to the balanced preset when absent.

    Raises:
        FileNotFoundError, json.JSONDecodeError, pydantic.ValidationError
    """
    settings_path = Path(path)
    lgr.debug(f"Loading verification settings from {settings_path}")

    with open(settings_path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    if "matchingSettings" not in raw and "matching_settings" not in raw:
        raw["matchingSettings"] = DEFAULT_MATCHING_SETTINGS.model_dump(by_alias=True)

    return VerificationSettings.model_validate(raw)
