from sglcv.cv import cv_panel_sglfit, cv_sglfit
from sglcv.ic import ic_panel_sglfit


import numpy as np


rng = np.random.default_rng(1)

# 100 observations, 20 regressors in 4 groups of 5
x = rng.standard_normal((100, 20))
beta = np.concatenate(([5, 4, 3, 2, 1], np.zeros(15)))
y = x @ beta + rng.standard_normal(100)
gindex = np.repeat(np.arange(1, 5), 5)


# Single outcome, 10 contiguous folds
cv_fit = cv_sglfit(x, y, gindex=gindex, gamma=0.5)
print(cv_fit.to_frame().head())
print("lambda.min :", cv_fit.lamin.lambda_min)
print("lambda.1se :", cv_fit.lamin.lambda_1se)
print("beta at lambda.min :", np.round(cv_fit.lam_min.beta, 3))


# Same data read as a panel of 10 units observed over 10 periods
nf = 10
y_panel = y + np.repeat(np.arange(nf) - 4.5, 100 // nf)

cv_fe = cv_panel_sglfit(x, y_panel, gindex=gindex, gamma=0.5, method="fe", nf=nf, nlambda=30)
print("fixed effects at lambda.min :", np.round(cv_fe.lam_min.a0, 2))

ic_fe = ic_panel_sglfit(x, y_panel, gindex=gindex, gamma=0.5, method="fe", nf=nf, nlambda=30)
print(ic_fe.scores.head())
for crit in ("bic", "aic", "aicc"):
    print(crit, ic_fe.lamin[crit])


# Corrected squared-error CV curve, folds fitted in 4 threads
cv_mse = cv_sglfit(x, y, gindex=gindex, gamma=0.5, loss="mse", n_jobs=4, nlambda=30)
print("lambda.min (mse) :", cv_mse.lamin.lambda_min)
