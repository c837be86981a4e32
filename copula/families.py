"""
Bivariate copula families used by the crash probability engine.

Each family implements the same capability set: log-density, CDF at a
point, parameter domain check and tail dependence coefficients.
CopulaFamily binds every enum member to exactly one implementation.

Formulas (u, v uniform margins):
- Gaussian: C(u,v) = Phi_rho(Phi^-1(u), Phi^-1(v))
- Student-t: C(u,v) = t_{nu,rho}(t_nu^-1(u), t_nu^-1(v)),
  lambda = 2 t_{nu+1}(-sqrt((nu+1)(1-rho)/(1+rho)))
- Clayton: C(u,v) = (u^-theta + v^-theta - 1)^(-1/theta), lambda_L = 2^(-1/theta)
- Gumbel: C(u,v) = exp(-[(-ln u)^theta + (-ln v)^theta]^(1/theta)),
  lambda_U = 2 - 2^(1/theta)
- Frank: C(u,v) = -1/theta ln(1 + (e^-theta u - 1)(e^-theta v - 1)/(e^-theta - 1))
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Sequence, Tuple

import numpy as np
from scipy import integrate
from scipy.special import gammaln
from scipy.stats import norm, t as student_t

_EPS = 1e-10


def _clip(u) -> np.ndarray:
    return np.clip(np.asarray(u, dtype=float), _EPS, 1 - _EPS)


class CopulaModel(ABC):
    """Shared interface of a one-pair parametric copula"""
    name: str = ''
    param_names: Tuple[str, ...] = ()

    @property
    def n_params(self) -> int:
        return len(self.param_names)

    @abstractmethod
    def log_density(self, u: np.ndarray, v: np.ndarray, params: Sequence[float]) -> np.ndarray:
        """Pointwise log copula density"""

    @abstractmethod
    def cdf(self, u: float, v: float, params: Sequence[float]) -> float:
        """Copula CDF C(u, v)"""

    @abstractmethod
    def in_domain(self, params: Sequence[float]) -> bool:
        """True when the parameters define a valid copula"""

    def tail_dependence(self, params: Sequence[float]) -> Tuple[float, float]:
        """(lower, upper) tail dependence coefficients"""
        return 0.0, 0.0

    def finalize(self, params: Sequence[float]) -> Tuple[float, ...]:
        """Map the raw optimizer output to the reported parameterization"""
        return tuple(float(p) for p in params)

    def log_likelihood(self, u: np.ndarray, v: np.ndarray, params: Sequence[float]) -> float:
        if not self.in_domain(params):
            return -np.inf
        return float(np.sum(self.log_density(_clip(u), _clip(v), params)))


class GaussianCopula(CopulaModel):
    name = 'gaussian'
    param_names = ('rho',)

    def in_domain(self, params):
        rho = params[0]
        return bool(np.isfinite(rho) and -1 < rho < 1)

    def log_density(self, u, v, params):
        rho = params[0]
        x, y = norm.ppf(u), norm.ppf(v)
        one_minus = 1 - rho ** 2
        return (-0.5 * np.log(one_minus)
                - (rho ** 2 * (x ** 2 + y ** 2) - 2 * rho * x * y) / (2 * one_minus))

    def cdf(self, u, v, params):
        rho = params[0]
        h, k = norm.ppf(_clip(u)), norm.ppf(_clip(v))
        scale = np.sqrt(1 - rho ** 2)

        # Integrate the conditional normal of the second margin
        def integrand(x):
            return norm.pdf(x) * norm.cdf((k - rho * x) / scale)

        value, _ = integrate.quad(integrand, -np.inf, float(h), epsabs=1e-12)
        return float(value)


class StudentTCopula(CopulaModel):
    name = 'student-t'
    param_names = ('rho', 'nu')

    def in_domain(self, params):
        rho, nu = params
        return bool(np.isfinite(rho) and np.isfinite(nu) and -1 < rho < 1 and nu > 0)

    def finalize(self, params):
        rho, nu = params
        # Degrees of freedom are reported as an integer
        return float(rho), float(max(1.0, np.floor(nu + 0.5)))

    def log_density(self, u, v, params):
        rho, nu = params
        x, y = student_t.ppf(u, df=nu), student_t.ppf(v, df=nu)
        one_minus = 1 - rho ** 2
        quad = (x ** 2 - 2 * rho * x * y + y ** 2) / (nu * one_minus)
        const = gammaln((nu + 2) / 2) + gammaln(nu / 2) - 2 * gammaln((nu + 1) / 2)
        return (const
                - 0.5 * np.log(one_minus)
                - (nu + 2) / 2 * np.log1p(quad)
                + (nu + 1) / 2 * (np.log1p(x ** 2 / nu) + np.log1p(y ** 2 / nu)))

    def cdf(self, u, v, params):
        rho, nu = params
        h, k = student_t.ppf(_clip(u), df=nu), student_t.ppf(_clip(v), df=nu)
        one_minus = 1 - rho ** 2

        # Y | X = x is t with nu + 1 dof, location rho x, scale^2 (1 - rho^2)(nu + x^2)/(nu + 1)
        def integrand(x):
            scale = np.sqrt(one_minus * (nu + x ** 2) / (nu + 1))
            return student_t.pdf(x, df=nu) * student_t.cdf((k - rho * x) / scale, df=nu + 1)

        value, _ = integrate.quad(integrand, -np.inf, float(h), epsabs=1e-12)
        return float(value)

    def tail_dependence(self, params):
        rho, nu = params
        lam = 2 * student_t.cdf(-np.sqrt((nu + 1) * (1 - rho) / (1 + rho)), df=nu + 1)
        return float(lam), float(lam)


class ClaytonCopula(CopulaModel):
    name = 'clayton'
    param_names = ('theta',)

    def in_domain(self, params):
        theta = params[0]
        return bool(np.isfinite(theta) and theta > 0)

    @staticmethod
    def _log_s(u, v, theta):
        # log(u^-theta + v^-theta - 1) without overflowing the powers
        a = np.logaddexp(-theta * np.log(u), -theta * np.log(v))
        return a + np.log1p(-np.exp(-a))

    def log_density(self, u, v, params):
        theta = params[0]
        return (np.log1p(theta)
                - (1 + theta) * (np.log(u) + np.log(v))
                - (2 + 1 / theta) * self._log_s(u, v, theta))

    def cdf(self, u, v, params):
        theta = params[0]
        u, v = _clip(u), _clip(v)
        return float(np.exp(-self._log_s(u, v, theta) / theta))

    def tail_dependence(self, params):
        return float(2 ** (-1 / params[0])), 0.0


class GumbelCopula(CopulaModel):
    name = 'gumbel'
    param_names = ('theta',)

    def in_domain(self, params):
        theta = params[0]
        return bool(np.isfinite(theta) and theta >= 1)

    @staticmethod
    def _terms(u, v, theta):
        x, y = -np.log(u), -np.log(v)
        log_sum = np.logaddexp(theta * np.log(x), theta * np.log(y))
        return x, y, log_sum, np.exp(log_sum / theta)

    def log_density(self, u, v, params):
        theta = params[0]
        x, y, log_sum, a = self._terms(u, v, theta)
        return (-a + x + y
                + (theta - 1) * (np.log(x) + np.log(y))
                - (2 - 1 / theta) * log_sum
                + np.log(a + theta - 1))

    def cdf(self, u, v, params):
        theta = params[0]
        _, _, _, a = self._terms(_clip(u), _clip(v), theta)
        return float(np.exp(-a))

    def tail_dependence(self, params):
        return 0.0, float(2 - 2 ** (1 / params[0]))


class FrankCopula(CopulaModel):
    name = 'frank'
    param_names = ('theta',)

    def in_domain(self, params):
        theta = params[0]
        return bool(np.isfinite(theta) and theta != 0)

    def log_density(self, u, v, params):
        theta = params[0]
        one_minus = -np.expm1(-theta)
        denom = one_minus - np.expm1(-theta * u) * np.expm1(-theta * v)
        return np.log(theta * one_minus) - theta * (u + v) - 2 * np.log(np.abs(denom))

    def cdf(self, u, v, params):
        theta = params[0]
        u, v = _clip(u), _clip(v)
        ratio = np.expm1(-theta * u) * np.expm1(-theta * v) / np.expm1(-theta)
        return float(-np.log1p(ratio) / theta)


class CopulaFamily(Enum):
    GAUSSIAN = 'gaussian'
    STUDENT_T = 'student-t'
    CLAYTON = 'clayton'
    GUMBEL = 'gumbel'
    FRANK = 'frank'

    @property
    def model(self) -> CopulaModel:
        return _MODELS[self]

    @property
    def n_params(self) -> int:
        return self.model.n_params


_MODELS: Dict[CopulaFamily, CopulaModel] = {
    CopulaFamily.GAUSSIAN: GaussianCopula(),
    CopulaFamily.STUDENT_T: StudentTCopula(),
    CopulaFamily.CLAYTON: ClaytonCopula(),
    CopulaFamily.GUMBEL: GumbelCopula(),
    CopulaFamily.FRANK: FrankCopula(),
}
