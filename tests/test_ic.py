import numpy as np
import pytest

from sglcv.errors import ConfigurationError, ConfigurationWarning
from sglcv.ic import ic_panel_sglfit, ic_scores, select_ic


def _no_fit(*args, **kwargs):
    raise AssertionError("sglfit must not run when the configuration is invalid")


def test_select_ic_breaks_ties_towards_smallest_lambda() -> None:
    lam = np.array([4.0, 3.0, 2.0, 1.0])
    assert select_ic(lam, np.array([2.0, 1.0, 5.0, 1.0])) == 3
    assert select_ic(lam, np.array([1.0, 0.5, 5.0, 3.0])) == 1


def test_select_ic_tie_independent_of_order() -> None:
    lam = np.array([1.0, 4.0, 2.0])
    assert select_ic(lam, np.array([0.3, 0.3, 0.3])) == 0


def test_ic_scores_hand_computed() -> None:
    y = np.array([1.0, 2.0, 3.0, 6.0])
    yhat = np.column_stack([np.full(4, 3.0), y + np.array([0.5, -0.5, 0.5, -0.5])])
    df = np.array([0.0, 2.0])

    scores = ic_scores(np.array([2.0, 1.0]), y, yhat, df)

    sigsq = np.sum((y - 3.0) ** 2) / 4
    assert list(scores.columns) == ["bic", "aic", "aicc"]
    assert scores.loc[2.0, "bic"] == pytest.approx(1.0)
    assert scores.loc[1.0, "bic"] == pytest.approx(0.25 / sigsq + np.log(4) / 4 * 2)
    assert scores.loc[1.0, "aic"] == pytest.approx(0.25 / sigsq + 1.0)
    assert scores.loc[1.0, "aicc"] == pytest.approx(0.25 / sigsq + 1.0 + 2 * 2 * 3 / (4 * 1))


def test_ic_scores_constant_response() -> None:
    with pytest.raises(ConfigurationError, match="constant"):
        ic_scores(np.array([1.0]), np.ones(3), np.ones((3, 1)), np.zeros(1))


def test_ic_panel_fixed_effects(panel_data) -> None:
    x, y, gindex, nf, _ = panel_data
    res = ic_panel_sglfit(x, y, gindex=gindex, gamma=0.5, method="fe", nf=nf, nlambda=10)

    assert res.scores.shape == (len(res.lambda_), 3)
    for crit, coefs in (("bic", res.bic_fit), ("aic", res.aic_fit), ("aicc", res.aicc_fit)):
        assert coefs.a0.shape == (nf,)
        assert coefs.b0 is None
        assert coefs.beta.shape == (20,)
        assert res.lamin[crit] == res.lambda_[res.idx[crit]]
        assert res.scores[crit].iloc[res.idx[crit]] == res.scores[crit].min()


def test_ic_panel_pooled(panel_data) -> None:
    x, y, gindex, nf, _ = panel_data
    res = ic_panel_sglfit(x, y, gindex=gindex, gamma=0.5, method="pooled", nf=nf, nlambda=10)

    assert isinstance(res.bic_fit.b0, float)
    assert res.bic_fit.a0 is None
    # log(100) > 2, so BIC never selects a denser model than AIC
    assert res.fit.df[res.idx["bic"]] <= res.fit.df[res.idx["aic"]]


def test_ic_panel_user_grid(panel_data) -> None:
    x, y, gindex, nf, _ = panel_data
    res = ic_panel_sglfit(x, y, lambda_=[0.01, 1.0, 0.1], gindex=gindex, method="fe", nf=nf)
    assert list(res.lambda_) == [1.0, 0.1, 0.01]
    assert list(res.scores.index) == [1.0, 0.1, 0.01]


def test_ic_panel_custom_penalty(panel_data) -> None:
    x, y, gindex, nf, _ = panel_data

    def no_penalty(criterion, df, n):
        return np.zeros_like(np.asarray(df, dtype=float))

    res = ic_panel_sglfit(x, y, gindex=gindex, method="fe", nf=nf, nlambda=6, penalty=no_penalty)
    assert res.idx["bic"] == res.idx["aic"] == res.idx["aicc"]


def test_ic_panel_fe_without_nf(panel_data, monkeypatch) -> None:
    x, y, gindex, _, _ = panel_data
    monkeypatch.setattr("sglcv.ic.sglfit", _no_fit)
    with pytest.raises(ConfigurationError, match="nf must be supplied"):
        ic_panel_sglfit(x, y, gindex=gindex, method="fe")


def test_ic_panel_pooled_without_nf_warns(panel_data) -> None:
    x, y, gindex, _, _ = panel_data
    with pytest.warns(ConfigurationWarning):
        res = ic_panel_sglfit(x, y, gindex=gindex, nlambda=4)
    assert res.fit.b0.shape == (len(res.lambda_),)


def test_ic_panel_constant_response_fails_before_fitting(panel_data, monkeypatch) -> None:
    x, _, gindex, nf, _ = panel_data
    monkeypatch.setattr("sglcv.ic.sglfit", _no_fit)
    with pytest.raises(ConfigurationError, match="constant"):
        ic_panel_sglfit(x, np.full(x.shape[0], 2.0), lambda_=[0.5, 0.1], gindex=gindex, method="fe", nf=nf)


def test_ic_panel_pooled_accepts_indivisible_rows(panel_data) -> None:
    x, y, gindex, nf, _ = panel_data
    res = ic_panel_sglfit(x[:66], y[:66], gindex=gindex, gamma=0.5, method="pooled", nf=nf, nlambda=4)
    assert res.bic_fit.a0 is None
    assert res.scores.shape == (len(res.lambda_), 3)
