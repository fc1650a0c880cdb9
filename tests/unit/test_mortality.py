"""Unit tests for survival weighting and profile key mapping"""

import pytest
from settlement_gateway.domain.mortality import HazardSurvivalModel, map_profile_answers, resolve_key


def test_survival_curve_starts_at_one_and_decreases():
    curve = HazardSurvivalModel().survival_curve(["age-57-65", "smoke-yes"])
    weights = [curve(years) for years in (0, 1, 5, 20)]

    assert weights[0] == 1.0
    assert all(0.0 <= w <= 1.0 for w in weights)
    assert weights == sorted(weights, reverse=True)


def test_riskier_profile_has_lower_survival():
    model = HazardSurvivalModel()
    healthy = model.survival_curve(["age-26-35", "smoke-no", "health-great"])
    risky = model.survival_curve(["age-57-65", "smoke-yes", "health-belowfair"])
    assert risky(10) < healthy(10)


def test_unknown_keys_use_baseline_hazard():
    model = HazardSurvivalModel(baseline_hazard=0.01)
    assert model.hazard_for(["person-1"]) == pytest.approx(0.01)


def test_negative_baseline_rejected():
    with pytest.raises(ValueError):
        HazardSurvivalModel(baseline_hazard=-0.1)


def test_map_profile_answers():
    """Test questionnaire answers become profile keys, unknown answers skipped"""
    keys = map_profile_answers(
        {
            "age_range": "36–45",
            "gender": "Male",
            "body_frame": "Medium",
            "weight": "Normal Weight",
            "smoke": "No",
            "health": "Great",
            "cardiac": "Not Sure",
            "favorite_color": "blue",
        }
    )
    assert keys == [
        "age-36-45",
        "gender-male",
        "build-medium",
        "normal",
        "smoke-no",
        "health-great",
        "cardiac-unsure",
    ]


def test_resolve_key():
    assert resolve_key("Male") == "gender-male"
    assert resolve_key("smoke-yes") == "smoke-yes"
    assert resolve_key(" person-1 ") == "person-1"
