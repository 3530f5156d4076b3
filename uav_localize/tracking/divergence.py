"""
Gaussian Divergence for Measurement-to-Track Association

Kullback-Leibler divergence between two multivariate normal distributions,
used as the association score between a measurement N(mu0, S0) and a track's
positional marginal N(mu1, S1):

    D_KL = 0.5 * ( tr(S1^-1 S0) + (mu1 - mu0)^T S1^-1 (mu1 - mu0) - k
                   + ln(det(S1) / det(S0)) )

Reference:
    - Kullback, S., Leibler, R. A. "On Information and Sufficiency", 1951
"""

import numpy as np

from ..exceptions import NumericDegeneracy


def _log_det(sigma: np.ndarray, name: str) -> float:
    sign, log_det = np.linalg.slogdet(sigma)
    if sign <= 0 or not np.isfinite(log_det):
        raise NumericDegeneracy(f"{name} covariance is singular or not positive definite")
    return float(log_det)


def kl_divergence(
    mu0: np.ndarray, sigma0: np.ndarray, mu1: np.ndarray, sigma1: np.ndarray
) -> float:
    """
    KL divergence D(N(mu0, sigma0) || N(mu1, sigma1)).

    Args:
        mu0: Mean of the first distribution (k,)
        sigma0: Covariance of the first distribution (k, k)
        mu1: Mean of the second distribution (k,)
        sigma1: Covariance of the second distribution (k, k)

    Returns:
        Non-negative divergence value

    Raises:
        NumericDegeneracy: if either covariance is singular, the inversion
            fails, or the result is not finite.
    """
    mu0 = np.asarray(mu0, dtype=np.float64)
    mu1 = np.asarray(mu1, dtype=np.float64)
    k = mu0.shape[0]

    log_det0 = _log_det(sigma0, "first")
    log_det1 = _log_det(sigma1, "second")

    try:
        sigma1_inv = np.linalg.inv(sigma1)
    except np.linalg.LinAlgError as exc:
        raise NumericDegeneracy(f"second covariance is not invertible: {exc}") from exc

    diff = mu1 - mu0
    div = 0.5 * (
        np.trace(sigma1_inv @ sigma0) + diff @ sigma1_inv @ diff - k + (log_det1 - log_det0)
    )

    if not np.isfinite(div):
        raise NumericDegeneracy("divergence evaluated to a non-finite value")
    return float(div)
