"""
Empirical-Bayes local false discovery rate.

Efron's two-groups model treats the z-values of all genes as draws from the
mixture

    f(z) = p0 f0(z) + (1 - p0) f1(z)

where f0 is the null density, f1 the non-null density and p0 the null
proportion. The local fdr is the posterior null probability

    fdr(z) = p0 f0(z) / f(z).

Estimation follows locfdr:
    1. t-statistics are mapped to z-values through their tail probability,
       z = Φ⁻¹(F_t(t; df)).
    2. The mixture density f is estimated by Poisson regression of histogram
       counts on a natural cubic spline basis (Lindsey's method).
    3. The null density f0 = N(δ0, σ0²) and p0 are estimated from the
       central part of the histogram, either by truncated-normal maximum
       likelihood ("mle"), by central matching of a quadratic to log f
       ("cme"), or fixed at N(0, 1) ("theoretical").

References:
    Efron, B. (2004). Large-scale simultaneous hypothesis testing: the choice
    of a null hypothesis. JASA 99(465):96-104.

    Efron, B. (2007). Size, power and false discovery rates.
    Annals of Statistics 35(4):1351-1377.

    Efron, B. (2010). Large-Scale Inference. Cambridge University Press.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray
from scipy import optimize
from scipy import stats as scipy_stats

logger = logging.getLogger(__name__)

__all__ = [
    'Z_CLIP',
    'MIN_Z_FOR_LOCFDR',
    't_to_z',
    'NullEstimate',
    'LocalFdrResult',
    'fit_mixture_density',
    'estimate_null',
    'estimate_local_fdr',
]

# Largest |z| representable from a non-zero double tail probability
Z_CLIP = float(scipy_stats.norm.isf(np.finfo(float).tiny))

MIN_Z_FOR_LOCFDR = 50

NullType = Literal["mle", "cme", "theoretical"]


def t_to_z(t: NDArray[np.float64], df: NDArray[np.float64] | float) -> NDArray[np.float64]:
    """
    Map t-statistics to standard-normal quantiles with the same tail probability.

    z = Φ⁻¹(F_t(t; df)). Positive statistics go through the upper tail
    (Φ⁻¹ of the survival function) so precision is kept for large |t|.
    Statistics whose tail probability underflows to zero are clipped to
    ±Z_CLIP; NaN statistics stay NaN.

    Args:
        t: t-statistics
        df: Degrees of freedom (scalar or per statistic)

    Returns:
        z-values
    """
    t = np.asarray(t, dtype=float)
    df = np.broadcast_to(np.asarray(df, dtype=float), t.shape)

    z = np.full(t.shape, np.nan)
    upper = t > 0
    lower = t <= 0

    z[upper] = scipy_stats.norm.isf(scipy_stats.t.sf(t[upper], df[upper]))
    z[lower] = scipy_stats.norm.ppf(scipy_stats.t.cdf(t[lower], df[lower]))

    n_clipped = int(np.sum(np.isinf(z)))
    if n_clipped:
        logger.warning(
            f"{n_clipped} t-statistics have tail probabilities below double precision; "
            f"their z-values are clipped to ±{Z_CLIP:.1f}"
        )
        z = np.clip(z, -Z_CLIP, Z_CLIP)

    return z


@dataclass(frozen=True)
class NullEstimate:
    """Null density N(delta, sigma²) and null proportion p0."""
    delta: float
    sigma: float
    p0: float
    nulltype: str

    def density(self, x: NDArray[np.float64]) -> NDArray[np.float64]:
        return scipy_stats.norm.pdf(x, loc=self.delta, scale=self.sigma)


@dataclass(frozen=True)
class LocalFdrResult:
    """Local fdr estimates.

    Attributes:
        fdr: Local fdr per input z-value (NaN where z is NaN)
        z: The z-values the estimate was computed from
        null: Estimated null (delta, sigma, p0)
        bin_centers: Histogram bin centres
        counts: Histogram counts
        mixture_density: Estimated f at bin centres
        null_density: p0 f0 at bin centres
    """

    fdr: NDArray[np.float64]
    z: NDArray[np.float64]
    null: NullEstimate
    bin_centers: NDArray[np.float64]
    counts: NDArray[np.float64]
    mixture_density: NDArray[np.float64]
    null_density: NDArray[np.float64]

    @property
    def p0(self) -> float:
        return self.null.p0

    def n_below(self, threshold: float = 0.10) -> int:
        """Number of z-values with local fdr below threshold."""
        return int(np.sum(np.nan_to_num(self.fdr, nan=np.inf) < threshold))


def fit_mixture_density(
    z: NDArray[np.float64],
    bins: int = 120,
    df: int = 7,
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """
    Estimate the mixture density f by Lindsey's method.

    Histogram counts y_k are modelled as Poisson with log mean given by a
    natural cubic regression spline in the bin centre x_k; the fitted means
    divided by N × bin width estimate f(x_k).

    Args:
        z: Finite z-values
        bins: Number of histogram bins
        df: Spline degrees of freedom

    Returns:
        (bin_centers, counts, density)
    """
    import statsmodels.api as sm
    from patsy import dmatrix

    z = np.asarray(z, dtype=float)
    n = len(z)

    breaks = np.linspace(z.min(), z.max(), bins + 1)
    counts, _ = np.histogram(z, bins=breaks)
    centers = (breaks[:-1] + breaks[1:]) / 2
    width = breaks[1] - breaks[0]

    basis = dmatrix(f"cr(x, df={df}) - 1", {"x": centers}, return_type="matrix")
    fit = sm.GLM(counts, np.asarray(basis), family=sm.families.Poisson()).fit()
    expected = np.asarray(fit.fittedvalues, dtype=float)

    return centers, counts.astype(float), expected / (n * width)


def _central_bounds(z: NDArray[np.float64], pct0: float) -> tuple[float, float]:
    return float(np.quantile(z, pct0)), float(np.quantile(z, 1 - pct0))


def _null_mle(z: NDArray[np.float64], pct0: float) -> NullEstimate:
    """
    Truncated-normal maximum likelihood on the central z-values.

    All z in [a, b] are treated as nulls. (δ, σ) maximise the truncated
    normal likelihood of those values; p0 = (N0 / N) / Q(δ, σ), where
    Q = Φ((b-δ)/σ) - Φ((a-δ)/σ) is the null mass inside [a, b].
    """
    a, b = _central_bounds(z, pct0)
    central = z[(z >= a) & (z <= b)]
    n0 = len(central)

    def negative_loglik(params: NDArray[np.float64]) -> float:
        delta, log_sigma = params
        sigma = np.exp(log_sigma)
        mass = scipy_stats.norm.cdf((b - delta) / sigma) - scipy_stats.norm.cdf((a - delta) / sigma)
        if mass <= 0:
            return np.inf
        loglik = scipy_stats.norm.logpdf(central, loc=delta, scale=sigma).sum() - n0 * np.log(mass)
        return -loglik

    iqr_sigma = (b - a) / (2 * scipy_stats.norm.ppf(1 - pct0))
    start = np.array([float(np.median(central)), np.log(max(iqr_sigma, 1e-3))])
    # sigma stays within a decade of the quantile-based start
    bounds = [(a, b), (start[1] - np.log(10.0), start[1] + np.log(10.0))]
    fit = optimize.minimize(
        negative_loglik, start, method="Nelder-Mead", bounds=bounds,
        options={"maxfev": 2000},
    )
    if not fit.success:
        logger.warning(f"Null MLE did not converge: {fit.message}")

    delta, sigma = float(fit.x[0]), float(np.exp(fit.x[1]))
    mass = scipy_stats.norm.cdf((b - delta) / sigma) - scipy_stats.norm.cdf((a - delta) / sigma)
    p0 = min(1.0, (n0 / len(z)) / mass)

    return NullEstimate(delta=delta, sigma=sigma, p0=p0, nulltype="mle")


def _null_cme(
    centers: NDArray[np.float64],
    density: NDArray[np.float64],
    z: NDArray[np.float64],
    pct0: float,
) -> NullEstimate:
    """
    Central matching: fit log f(x) ≈ β0 + β1 x + β2 x² near the centre.

    A N(δ, σ²) density scaled by p0 has exactly this form with
    σ² = -1/(2β2), δ = β1 σ² and p0 = exp(β0 + δ²/(2σ²)) √(2π) σ.
    """
    a, b = _central_bounds(z, pct0)
    central = (centers >= a) & (centers <= b) & (density > 0)
    if central.sum() < 3:
        raise ValueError("Central matching needs at least 3 histogram bins in the central region")

    beta2, beta1, beta0 = np.polyfit(centers[central], np.log(density[central]), deg=2)
    if beta2 >= 0:
        raise ValueError(
            "Central matching failed: log density is not concave near the centre; "
            "use nulltype='mle' or 'theoretical'"
        )

    sigma2 = -1.0 / (2.0 * beta2)
    delta = beta1 * sigma2
    sigma = float(np.sqrt(sigma2))
    p0 = float(np.exp(beta0 + delta ** 2 / (2 * sigma2)) * np.sqrt(2 * np.pi) * sigma)

    return NullEstimate(delta=float(delta), sigma=sigma, p0=min(1.0, p0), nulltype="cme")


def _null_theoretical(
    centers: NDArray[np.float64],
    density: NDArray[np.float64],
    z: NDArray[np.float64],
    pct0: float,
) -> NullEstimate:
    """N(0, 1) null; p0 = Σ f / Σ f0 over the central bins."""
    a, b = _central_bounds(z, pct0)
    central = (centers >= a) & (centers <= b)
    f0 = scipy_stats.norm.pdf(centers[central])
    p0 = float(density[central].sum() / f0.sum()) if central.any() else 1.0
    return NullEstimate(delta=0.0, sigma=1.0, p0=min(1.0, p0), nulltype="theoretical")


def estimate_null(
    z: NDArray[np.float64],
    centers: NDArray[np.float64],
    density: NDArray[np.float64],
    nulltype: NullType = "mle",
    pct0: float = 0.25,
) -> NullEstimate:
    """
    Estimate the null density parameters and null proportion.

    Args:
        z: Finite z-values
        centers: Histogram bin centres
        density: Estimated mixture density at the bin centres
        nulltype: "mle", "cme" or "theoretical"
        pct0: The central region is the [pct0, 1 - pct0] quantile range of z
    """
    if not 0 < pct0 < 0.5:
        raise ValueError(f"pct0 must be in (0, 0.5), got {pct0}")

    if nulltype == "mle":
        return _null_mle(z, pct0)
    if nulltype == "cme":
        return _null_cme(centers, density, z, pct0)
    if nulltype == "theoretical":
        return _null_theoretical(centers, density, z, pct0)
    raise ValueError(f"Unknown nulltype {nulltype!r}; use 'mle', 'cme' or 'theoretical'")


def estimate_local_fdr(
    z: NDArray[np.float64],
    nulltype: NullType = "mle",
    bins: int = 120,
    df: int = 7,
    pct0: float = 0.25,
) -> LocalFdrResult:
    """
    Local fdr for every z-value.

    Args:
        z: z-values (NaN allowed; their fdr is NaN)
        nulltype: Null estimation method ("mle", "cme" or "theoretical")
        bins: Histogram bins for the mixture density
        df: Spline degrees of freedom for the mixture density
        pct0: Central quantile range used for the null estimate

    Returns:
        LocalFdrResult with fdr = min(1, p0 f0(z) / f(z)) interpolated from
        the bin centres

    Raises:
        ValueError: If fewer than MIN_Z_FOR_LOCFDR finite z-values are given

    Examples:
        >>> z = t_to_z(tests.statistic, tests.df)
        >>> lfdr = estimate_local_fdr(z)
        >>> print(f"p0 = {lfdr.p0:.3f}, {lfdr.n_below(0.10)} genes with fdr < 0.10")
    """
    z = np.asarray(z, dtype=float)
    finite = np.isfinite(z)
    n_finite = int(finite.sum())
    if n_finite < MIN_Z_FOR_LOCFDR:
        raise ValueError(
            f"Local fdr estimation needs at least {MIN_Z_FOR_LOCFDR} finite z-values, "
            f"got {n_finite}"
        )
    if bins < 10:
        raise ValueError(f"bins must be at least 10, got {bins}")

    zz = z[finite]
    centers, counts, density = fit_mixture_density(zz, bins=bins, df=df)
    null = estimate_null(zz, centers, density, nulltype=nulltype, pct0=pct0)

    null_density = null.p0 * null.density(centers)
    with np.errstate(divide='ignore', invalid='ignore'):
        fdr_bins = np.where(density > 0, null_density / density, 1.0)
    fdr_bins = np.clip(fdr_bins, 0.0, 1.0)

    fdr = np.full(z.shape, np.nan)
    fdr[finite] = np.interp(zz, centers, fdr_bins)

    logger.info(
        f"Local fdr ({null.nulltype} null): delta={null.delta:.3f}, "
        f"sigma={null.sigma:.3f}, p0={null.p0:.3f}"
    )

    return LocalFdrResult(
        fdr=fdr,
        z=z,
        null=null,
        bin_centers=centers,
        counts=counts,
        mixture_density=density,
        null_density=null_density,
    )
