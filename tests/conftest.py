from typing import Any, Callable, Dict, List

import pytest

from source_taster.logic.enums import MatchingMode, NormalizationRule
from source_taster.logic.models import Candidate, Reference
from source_taster.ports.settings import (
    EarlyTerminationConfig,
    FieldConfig,
    MatchingConfig,
    MatchingSettings,
    MatchingStrategy,
    VerificationSettings,
)


type TMatchingSettingsFactory = Callable[..., MatchingSettings]


def _matching_settings(
    weights: Dict[str, float] | None = None,
    rules: List[NormalizationRule] | None = None,
) -> MatchingSettings:
    weights = weights if weights is not None else {"title": 50, "author": 30, "issued": 20}
    rules = rules if rules is not None else [NormalizationRule.PUNCTUATION, NormalizationRule.LOWERCASE]

    return MatchingSettings(
        matching_strategy=MatchingStrategy(mode=MatchingMode.CUSTOM, normalization_rules=rules),
        matching_config=MatchingConfig(
            field_configurations={field: FieldConfig(enabled=True, weight=weight) for field, weight in weights.items()}
        ),
    )


@pytest.fixture
def make_matching_settings() -> TMatchingSettingsFactory:
    return _matching_settings


@pytest.fixture
def matching_settings() -> MatchingSettings:
    """title 50 / author 30 / issued 20, punctuation and lowercase rules."""
    return _matching_settings()


@pytest.fixture
def make_verification_settings(
    matching_settings: MatchingSettings,
) -> Callable[..., VerificationSettings]:
    def factory(
        sources: List[str],
        early_termination: bool = True,
        threshold: int = 85,
        **kwargs: Any,
    ) -> VerificationSettings:
        return VerificationSettings(
            matching_settings=matching_settings,
            sources=sources,
            early_termination=EarlyTerminationConfig(enabled=early_termination, threshold=threshold),
            **kwargs,
        )

    return factory


@pytest.fixture
def deep_learning_reference() -> Reference:
    return Reference(
        id="ref-1",
        metadata={"title": "Deep Learning", "author": [{"family": "Smith"}], "issued": "2020"},
    )


@pytest.fixture
def deep_learning_candidate() -> Candidate:
    return Candidate(
        id="cand-1",
        source="crossref",
        metadata={"title": "Deep learning.", "author": [{"family": "Smith"}], "issued": "2020"},
        url="https://doi.org/10.1000/dl",
    )


@pytest.fixture
def unrelated_candidate() -> Candidate:
    return Candidate(
        id="cand-2",
        source="crossref",
        metadata={"title": "Medieval Agriculture", "author": [{"family": "Jones"}], "issued": "1987"},
    )
