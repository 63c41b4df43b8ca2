"""Shared fixtures for table tests."""

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm
import statsmodels.formula.api as smf

from tblsummary.theme import reset_theme


@pytest.fixture(scope="function", autouse=True)
def clear_theme():
    """Reset the package theme between tests to prevent pollution."""
    yield
    reset_theme()


@pytest.fixture
def trial():
    """Clinical-trial-like DataFrame (200 patients, two treatment arms).

    age, marker and response contain missing values.
    """
    np.random.seed(42)
    n = 200

    trt = np.random.choice(["Drug A", "Drug B"], size=n)
    age = np.random.normal(47, 14, size=n).round()
    age[np.random.choice(n, 11, replace=False)] = np.nan
    marker = np.random.gamma(1.0, 0.9, size=n).round(2)
    marker[np.random.choice(n, 10, replace=False)] = np.nan
    grade = pd.Categorical(
        np.random.choice(["I", "II", "III"], size=n), categories=["I", "II", "III"]
    )
    stage = np.random.choice(["T1", "T2", "T3", "T4"], size=n)

    # response depends on age and treatment
    linear = -1 + 0.02 * (np.nan_to_num(age, nan=47) - 47) + 0.5 * (trt == "Drug B")
    response = (np.random.uniform(size=n) < 1 / (1 + np.exp(-linear))).astype(float)
    response[np.random.choice(n, 7, replace=False)] = np.nan

    return pd.DataFrame(
        {
            "trt": trt,
            "age": age,
            "marker": marker,
            "grade": grade,
            "stage": stage,
            "response": response,
        }
    )


@pytest.fixture
def paired_data():
    """Two visits per subject with a continuous and a yes/no outcome."""
    np.random.seed(7)
    n = 40
    pre = np.random.normal(10, 2, size=n)
    post = pre + np.random.normal(0.8, 1, size=n)
    improved_pre = np.random.choice([0, 1], size=n, p=[0.7, 0.3])
    improved_post = np.where(np.random.uniform(size=n) < 0.4, 1, improved_pre)
    return pd.DataFrame(
        {
            "id": np.tile(np.arange(n), 2),
            "visit": ["pre"] * n + ["post"] * n,
            "score": np.concatenate([pre, post]),
            "improved": np.concatenate([improved_pre, improved_post]),
        }
    )


@pytest.fixture
def small_df():
    """Tiny DataFrame with hand-checkable statistics."""
    return pd.DataFrame({"g": ["a", "a", "b", None]})


@pytest.fixture
def ols_model(trial):
    """Linear model with a quadratic marker term and a categorical grade."""
    return smf.ols("age ~ marker + I(marker**2) + C(grade)", data=trial).fit()


@pytest.fixture
def logit_model(trial):
    """Logistic model of response on age, treatment and grade."""
    return smf.logit("response ~ age + C(trt) + C(grade)", data=trial).fit(disp=0)


@pytest.fixture
def glm_model(trial):
    """Binomial GLM with a quadratic marker term."""
    return smf.glm(
        "response ~ marker + I(marker**2) + C(grade)",
        data=trial,
        family=sm.families.Binomial(),
    ).fit()
