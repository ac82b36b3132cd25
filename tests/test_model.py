import numpy as np
import pandas as pd
import pytest
from scipy import stats

from flood_transfer import (
    FeatureNormalizer, GridDataset, LogisticRiskModel, NonConvergenceWarning,
    SchemaMismatchError, SeparationWarning,
)
from flood_transfer.config import FEATURE_FIELDS


@pytest.fixture
def risk_model():
    return LogisticRiskModel()


@pytest.fixture
def fitted(risk_model, normalized_training):
    return risk_model.fit(normalized_training, FEATURE_FIELDS, "inundated")


def test_fit_converges_and_records_metadata(fitted, normalized_training):
    assert fitted.converged
    assert not fitted.separation_detected
    assert fitted.n_samples == len(normalized_training)
    assert fitted.n_positive == int(normalized_training.column("inundated").sum())
    assert fitted.feature_names == tuple(FEATURE_FIELDS)
    assert len(fitted.coefficients) == len(FEATURE_FIELDS) + 1
    assert fitted.link == "logit"


def test_fit_recovers_coefficient_signs(fitted):
    table = fitted.coefficient_table().set_index("term")
    assert table.loc["normalized_elevation", "estimate"] < 0
    assert table.loc["distance_to_river", "estimate"] < 0
    assert table.loc["normalized_flow_accumulation", "estimate"] > 0


def test_score_equations_vanish_at_optimum(fitted, risk_model, normalized_training):
    """Gradient of the log-likelihood is ~0 at the maximum-likelihood estimate."""
    X = np.column_stack([np.ones(len(normalized_training)), normalized_training.matrix(FEATURE_FIELDS)])
    y = normalized_training.column("inundated")
    p = risk_model.predict(fitted, normalized_training)

    gradient = X.T @ (y - p)
    scale = np.abs(X).sum(axis=0)
    assert np.all(np.abs(gradient) / scale < 1e-5)


def test_log_likelihood_beats_null(fitted):
    assert fitted.log_likelihood > fitted.null_log_likelihood
    assert 0 < fitted.pseudo_r2 < 1
    assert fitted.aic == pytest.approx(fitted.deviance + 2 * len(fitted.coefficients))


def test_wald_statistics(fitted):
    table = fitted.coefficient_table()
    np.testing.assert_allclose(table["z_value"], table["estimate"] / table["std_error"])
    np.testing.assert_allclose(table["p_value"], 2 * stats.norm.sf(np.abs(table["z_value"])))
    assert np.all(table["std_error"] > 0)
    assert list(table["term"])[0] == "(Intercept)"


def test_predict_monotone_in_negative_coefficient(fitted, risk_model, normalized_training):
    """Raising a feature with a negative weight strictly lowers probability."""
    feature = "normalized_elevation"
    assert fitted.coefficient_table().set_index("term").loc[feature, "estimate"] < 0

    base = normalized_training.subset(normalized_training.index[:20])
    bumped = base.with_column(feature, base.column(feature) + 10.0)

    assert np.all(risk_model.predict(fitted, bumped) < risk_model.predict(fitted, base))


def test_probabilities_strictly_inside_unit_interval(fitted, risk_model, normalized_training):
    """Even saturated linear predictors never give exactly 0 or 1."""
    extreme = normalized_training.subset(normalized_training.index[:2])
    extreme = extreme.with_column("normalized_elevation", [-1e7, 1e7])
    p = risk_model.predict(fitted, extreme)
    assert np.all(p > 0) and np.all(p < 1)


def test_predict_requires_feature_fields(fitted, risk_model, training_dataset):
    """Raw (un-normalized) dataset lacks the normalized features."""
    with pytest.raises(SchemaMismatchError) as exc:
        risk_model.predict(fitted, training_dataset)
    assert "normalized_elevation" in exc.value.missing


def test_transfer_to_independently_normalized_city(fitted, risk_model, target_dataset):
    """A model fit on city A scores city B normalized on its own ranges."""
    portland = FeatureNormalizer().normalize_city(target_dataset)
    p = risk_model.predict(fitted, portland)
    assert len(p) == len(portland)
    assert np.all((p > 0) & (p < 1))


def test_score_appends_probability(fitted, risk_model, normalized_training):
    scored = risk_model.score(fitted, normalized_training)
    assert "predicted_probability" in scored
    assert "predicted_probability" not in normalized_training


def test_all_negative_labels_converge(risk_model, training_frame):
    """No flooded cells: intercept runs to -inf-like values, fit still converges."""
    training_frame["inundated"] = 0
    dataset = FeatureNormalizer().normalize_city(GridDataset(training_frame))

    model = risk_model.fit(dataset, FEATURE_FIELDS, "inundated")
    p = risk_model.predict(model, dataset)

    assert model.converged
    assert model.n_positive == 0
    assert model.intercept < -10
    assert np.all(p < 0.01)


def test_iteration_cap_warns(normalized_training):
    with pytest.warns(NonConvergenceWarning):
        model = LogisticRiskModel(max_iter=1).fit(normalized_training, FEATURE_FIELDS, "inundated")
    assert not model.converged
    assert model.n_iterations == 1


def test_perfect_separation_detected():
    """A threshold on one predictor separating the classes is flagged."""
    rng = np.random.default_rng(3)
    x = np.concatenate([rng.uniform(-5, -0.5, 100), rng.uniform(0.5, 5, 100)])
    frame = pd.DataFrame({"x": x, "inundated": (x > 0).astype(int)})
    dataset = GridDataset(frame, predictor_fields=["x"])

    with pytest.warns(SeparationWarning):
        model = LogisticRiskModel().fit(dataset, ["x"], "inundated")
    assert model.separation_detected
    assert model.weights[0] > 0


def test_fit_requires_label(risk_model, target_dataset):
    portland = FeatureNormalizer().normalize_city(target_dataset)
    with pytest.raises(SchemaMismatchError):
        risk_model.fit(portland, FEATURE_FIELDS, "inundated")


def test_trained_model_is_immutable(fitted):
    with pytest.raises(AttributeError):
        fitted.converged = False


def test_save_and_load(tmp_path, fitted, risk_model, normalized_training):
    paths = LogisticRiskModel.save_model(fitted, tmp_path)
    assert paths["summary"].exists()
    assert paths["coefficients"].exists()

    loaded = LogisticRiskModel.load_model(tmp_path)
    assert loaded == fitted
    np.testing.assert_array_equal(
        risk_model.predict(loaded, normalized_training),
        risk_model.predict(fitted, normalized_training),
    )


def test_separation_reported_with_own_warning_only():
    """statsmodels' separation warning is re-issued as SeparationWarning."""
    from statsmodels.tools.sm_exceptions import PerfectSeparationWarning

    x = np.linspace(-3, 3, 60)
    frame = pd.DataFrame({"x": x, "inundated": (x > 0).astype(int)})
    dataset = GridDataset(frame, predictor_fields=["x"])

    with pytest.warns(SeparationWarning) as record:
        LogisticRiskModel().fit(dataset, ["x"], "inundated", verbose=False)
    assert not any(issubclass(w.category, PerfectSeparationWarning) for w in record)


def test_constant_feature_keeps_intercept(risk_model, normalized_training):
    """A feature equal to 1 everywhere does not replace the intercept column."""
    everywhere_developed = normalized_training.with_column("all_developed", np.ones(len(normalized_training)))
    fields = tuple(FEATURE_FIELDS) + ("all_developed",)

    model = risk_model.fit(everywhere_developed, fields, "inundated", verbose=False)
    assert len(model.coefficients) == len(fields) + 1
    assert model.terms[-1] == "all_developed"


def test_collinear_land_cover_still_fits(risk_model, training_frame):
    """Land cover summing to 1 in every cell is rank deficient but predicts the same."""
    training_frame["grassland"] = 1.0 - training_frame["developed"] - training_frame["forest"]
    dataset = FeatureNormalizer().normalize_city(GridDataset(training_frame))
    reduced_fields = [f for f in FEATURE_FIELDS if f != "grassland"]

    full = risk_model.fit(dataset, FEATURE_FIELDS, "inundated", verbose=False)
    reduced = risk_model.fit(dataset, reduced_fields, "inundated", verbose=False)

    assert np.all(np.isfinite(full.coefficients))
    np.testing.assert_allclose(
        risk_model.predict(full, dataset), risk_model.predict(reduced, dataset), atol=1e-6
    )
    assert full.log_likelihood == pytest.approx(reduced.log_likelihood, abs=1e-6)
