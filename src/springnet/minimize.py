"""
Energy minimization by Polak-Ribiere conjugate gradients.

The outer loop (:class:`ConjugateGradient`) needs an objective that exposes
``f(x)`` through ``__call__`` and its gradient through ``df(x)``. Each outer
iteration performs a line minimization along the conjugate direction: the
minimum is first bracketed by golden-section expansion with parabolic
extrapolation (:func:`bracket`), then isolated by Brent's method using
derivatives (:func:`dbrent`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, NamedTuple, Protocol

import numpy as np

from .errors import ConvergenceError
from .network import Network

GOLD = 1.618034
GLIMIT = 100.0
TINY = 1.0e-20

DBRENT_TOL = 3.0e-8
DBRENT_ITMAX = 1000
ZEPS = np.finfo(np.float64).eps * 1.0e-3

FTOL = 1.0e-7
GTOL = 1.0e-8
EPS = 1.0e-18
ITMAX = 1_000_000


class Objective(Protocol):
    def __call__(self, x: np.ndarray) -> float: ...

    def df(self, x: np.ndarray) -> np.ndarray: ...


class Bracket(NamedTuple):
    ax: float
    bx: float
    cx: float
    fa: float
    fb: float
    fc: float


class LineMinimum(NamedTuple):
    xmin: float
    fmin: float


def _sign(a: float, b: float) -> float:
    return abs(a) if b >= 0.0 else -abs(a)


###############################################################################
# One-dimensional routines
###############################################################################


def bracket(func: Callable[[float], float], a: float, b: float) -> Bracket:
    """
    Bracket a minimum of ``func`` starting from the distinct points ``a`` and ``b``.

    Searches downhill and returns ``ax, bx, cx`` with ``bx`` between the other
    two and ``f(bx)`` no greater than ``f(ax)`` and ``f(cx)``.
    """
    ax, bx = a, b
    fa = func(ax)
    fb = func(bx)
    if fb > fa:
        ax, bx = bx, ax
        fa, fb = fb, fa

    cx = bx + GOLD * (bx - ax)
    fc = func(cx)

    while fb > fc:
        r = (bx - ax) * (fb - fc)
        q = (bx - cx) * (fb - fa)
        u = bx - ((bx - cx) * q - (bx - ax) * r) / (2.0 * _sign(max(abs(q - r), TINY), q - r))
        ulim = bx + GLIMIT * (cx - bx)

        if (bx - u) * (u - cx) > 0.0:
            # Parabolic u between b and c.
            fu = func(u)
            if fu < fc:
                return Bracket(bx, u, cx, fb, fu, fc)
            if fu > fb:
                return Bracket(ax, bx, u, fa, fb, fu)
            u = cx + GOLD * (cx - bx)
            fu = func(u)
        elif (cx - u) * (u - ulim) > 0.0:
            # Parabolic u between c and its allowed limit.
            fu = func(u)
            if fu < fc:
                bx, cx, u = cx, u, u + GOLD * (u - cx)
                fb, fc, fu = fc, fu, func(u)
        elif (u - ulim) * (ulim - cx) >= 0.0:
            u = ulim
            fu = func(u)
        else:
            u = cx + GOLD * (cx - bx)
            fu = func(u)

        ax, bx, cx = bx, cx, u
        fa, fb, fc = fb, fc, fu

    return Bracket(ax, bx, cx, fa, fb, fc)


def dbrent(
    func: Callable[[float], float],
    dfunc: Callable[[float], float],
    br: Bracket,
    tol: float = DBRENT_TOL,
    itmax: int = DBRENT_ITMAX,
) -> LineMinimum:
    """
    Brent's minimization using derivatives, on a bracketing triplet.

    Isolates the minimum to a fractional precision of about ``tol``. Secant
    steps from the derivative at the two best points are accepted only when
    they stay inside the bracket and point downhill; otherwise the bracket is
    bisected on the side the derivative indicates.
    """
    a = min(br.ax, br.cx)
    b = max(br.ax, br.cx)
    x = w = v = br.bx
    fw = fv = fx = func(x)
    dw = dv = dx = dfunc(x)
    d = 0.0
    e = 0.0

    for _ in range(itmax):
        xm = 0.5 * (a + b)
        tol1 = tol * abs(x) + ZEPS
        tol2 = 2.0 * tol1
        if abs(x - xm) <= (tol2 - 0.5 * (b - a)):
            return LineMinimum(x, fx)

        if abs(e) > tol1:
            d1 = 2.0 * (b - a)
            d2 = d1
            if dw != dx:
                d1 = (w - x) * dx / (dx - dw)
            if dv != dx:
                d2 = (v - x) * dx / (dx - dv)
            u1 = x + d1
            u2 = x + d2
            ok1 = (a - u1) * (u1 - b) > 0.0 and dx * d1 <= 0.0
            ok2 = (a - u2) * (u2 - b) > 0.0 and dx * d2 <= 0.0
            olde = e
            e = d
            if ok1 or ok2:
                if ok1 and ok2:
                    d = d1 if abs(d1) < abs(d2) else d2
                elif ok1:
                    d = d1
                else:
                    d = d2
                if abs(d) <= abs(0.5 * olde):
                    u = x + d
                    if u - a < tol2 or b - u < tol2:
                        d = _sign(tol1, xm - x)
                else:
                    e = a - x if dx >= 0.0 else b - x
                    d = 0.5 * e
            else:
                e = a - x if dx >= 0.0 else b - x
                d = 0.5 * e
        else:
            e = a - x if dx >= 0.0 else b - x
            d = 0.5 * e

        if abs(d) >= tol1:
            u = x + d
            fu = func(u)
        else:
            u = x + _sign(tol1, d)
            fu = func(u)
            # The smallest downhill step goes uphill: done.
            if fu > fx:
                return LineMinimum(x, fx)

        du = dfunc(u)
        if fu <= fx:
            if u >= x:
                a = x
            else:
                b = x
            v, fv, dv = w, fw, dw
            w, fw, dw = x, fx, dx
            x, fx, dx = u, fu, du
        else:
            if u < x:
                a = u
            else:
                b = u
            if fu <= fw or w == x:
                v, fv, dv = w, fw, dw
                w, fw, dw = u, fu, du
            elif fu < fv or v == x or v == w:
                v, fv, dv = u, fu, du

    raise ConvergenceError("dbrent", itmax)


class LineFunction:
    """Restriction of an objective to the line ``p + t * xi``."""

    def __init__(self, objective: Objective, p: np.ndarray, xi: np.ndarray) -> None:
        self.objective = objective
        self.p = p
        self.xi = xi

    def point(self, t: float) -> np.ndarray:
        return self.p + t * self.xi

    def __call__(self, t: float) -> float:
        return float(self.objective(self.point(t)))

    def df(self, t: float) -> float:
        return float(np.dot(self.objective.df(self.point(t)), self.xi))


def linmin(objective: Objective, p: np.ndarray, xi: np.ndarray, tol: float = DBRENT_TOL):
    """
    Minimize ``objective`` along ``xi`` from ``p``.

    Returns ``(p_new, step, f_min)`` where ``step`` is the displacement
    actually taken (``xi`` scaled by the optimal abscissa).
    """
    line = LineFunction(objective, p, xi)
    br = bracket(line, 0.0, 1.0)
    xmin, fmin = dbrent(line, line.df, br, tol=tol)
    step = xi * xmin
    return p + step, step, fmin


###############################################################################
# Conjugate gradients
###############################################################################


@dataclass
class MinimizationResult:
    x: np.ndarray
    fun: float
    iterations: int
    reason: str
    history: List[float] = field(default_factory=list)


class ConjugateGradient:
    """
    Polak-Ribiere conjugate-gradient minimizer.

    Converges when one line minimization lowers the function by less than
    ``ftol`` (fractional), when the scaled maximum gradient component falls
    below ``gtol``, or when the gradient vanishes. Exceeding ``itmax`` outer
    iterations raises :class:`ConvergenceError`.
    """

    def __init__(
        self,
        objective: Objective,
        ftol: float = FTOL,
        gtol: float = GTOL,
        itmax: int = ITMAX,
        line_tol: float = DBRENT_TOL,
    ) -> None:
        self.objective = objective
        self.ftol = ftol
        self.gtol = gtol
        self.itmax = itmax
        self.line_tol = line_tol

    def _gradient_converged(self, p: np.ndarray, grad: np.ndarray, fp: float) -> bool:
        den = max(fp, 1.0)
        test = np.max(np.abs(grad) * np.maximum(np.abs(p), 1.0)) / den
        return bool(test < self.gtol)

    def minimize(self, x0: np.ndarray) -> MinimizationResult:
        p = np.array(x0, dtype=np.float64)
        fp = float(self.objective(p))
        xi = np.asarray(self.objective.df(p), dtype=np.float64)
        g = -xi
        h = g.copy()
        history = [fp]

        for its in range(self.itmax):
            if self._gradient_converged(p, xi, fp):
                return MinimizationResult(p, fp, its + 1, "gtol", history)
            gg = float(np.dot(g, g))
            if gg == 0.0:
                return MinimizationResult(p, fp, its + 1, "zero_gradient", history)

            p, _, fret = linmin(self.objective, p, h, tol=self.line_tol)
            history.append(fret)
            if 2.0 * abs(fret - fp) <= self.ftol * (abs(fret) + abs(fp) + EPS):
                return MinimizationResult(p, fret, its + 1, "ftol", history)

            fp = fret
            xi = np.asarray(self.objective.df(p), dtype=np.float64)
            dgg = float(np.dot(xi + g, xi))
            gam = dgg / gg
            g = -xi
            h = g + gam * h

        raise ConvergenceError("frprmn", self.itmax)


###############################################################################
# Network objective
###############################################################################


class NetworkEnergy:
    """Elastic energy of a network as a function of its flat position vector."""

    def __init__(self, network: Network) -> None:
        self.network = network

    def __call__(self, x: np.ndarray) -> float:
        return self.network.energy(x)

    def df(self, x: np.ndarray) -> np.ndarray:
        return self.network.gradient(x)


def relax_network(
    network: Network,
    ftol: float = FTOL,
    gtol: float = GTOL,
    itmax: int = ITMAX,
    line_tol: float = DBRENT_TOL,
) -> MinimizationResult:
    """
    Minimize the network's elastic energy at fixed strain.

    The converged positions replace ``network.positions`` wholesale.
    """
    cg = ConjugateGradient(NetworkEnergy(network), ftol=ftol, gtol=gtol,
                           itmax=itmax, line_tol=line_tol)
    result = cg.minimize(network.positions)
    network.positions = np.ascontiguousarray(result.x)
    return result


__all__ = [
    "Bracket",
    "ConjugateGradient",
    "LineFunction",
    "LineMinimum",
    "MinimizationResult",
    "NetworkEnergy",
    "bracket",
    "dbrent",
    "linmin",
    "relax_network",
]
