"""Levenberg-Marquardt driver for models that supply their own Jacobian."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np
from numpy.typing import ArrayLike
from scipy.optimize import least_squares

from ..analysis.features import rms
from .errors import CalibrationCancelled, MalformedInputError

logger = logging.getLogger(__name__)

# MINPACK takes the evaluation cap as a C int
UNBOUNDED_EVALUATIONS = 2**31 - 1

ModelFunction = Callable[[np.ndarray], Tuple[np.ndarray, np.ndarray]]


@dataclass(frozen=True)
class SolverResult:
    """Optimum found by :class:`LeastSquaresEngine`."""

    params: np.ndarray
    residuals: np.ndarray
    rms: float
    evaluations: int
    status: int
    message: str


class LeastSquaresEngine:
    """
    Fit ``params`` so that ``model(params)[0]`` approaches ``target``.

    ``model`` returns ``(predicted, jacobian)`` where ``jacobian`` has one row
    per target entry and one column per parameter. Termination is driven by
    the cost-relative (``ftol``) and parameter-relative (``xtol``)
    tolerances; the evaluation cap defaults to effectively unbounded, so a
    model whose cost surface never settles can keep the solver busy for a
    long time. Set ``cancel_event`` to abort such a run from another thread.
    """

    def __init__(
        self,
        model: ModelFunction,
        target: ArrayLike,
        *,
        cost_tolerance: float = 1e-7,
        param_tolerance: float = 1e-7,
        gradient_tolerance: float = 1e-10,
        max_evaluations: int = UNBOUNDED_EVALUATIONS,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self._model = model
        self.target = np.asarray(target, dtype=float).reshape(-1)
        if self.target.size == 0:
            raise MalformedInputError("least-squares target is empty")
        self.cost_tolerance = float(cost_tolerance)
        self.param_tolerance = float(param_tolerance)
        self.gradient_tolerance = float(gradient_tolerance)
        self.max_evaluations = max(1, min(int(max_evaluations), UNBOUNDED_EVALUATIONS))
        self._cancel_event = cancel_event
        self._cache_key: Optional[bytes] = None
        self._cache_value: Optional[Tuple[np.ndarray, np.ndarray]] = None
        self._evaluations = 0

    def evaluate(self, params: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(predicted, jacobian)`` at ``params``, reusing the last call."""
        point = np.asarray(params, dtype=float).reshape(-1)
        key = point.tobytes()
        if key == self._cache_key and self._cache_value is not None:
            return self._cache_value

        if self._cancel_event is not None and self._cancel_event.is_set():
            raise CalibrationCancelled("least-squares solve cancelled")

        predicted, jacobian = self._model(point.copy())
        predicted = np.asarray(predicted, dtype=float).reshape(-1)
        jacobian = np.asarray(jacobian, dtype=float).reshape(predicted.size, point.size)
        if predicted.size != self.target.size:
            raise MalformedInputError(
                f"model returned {predicted.size} values for a target of {self.target.size}"
            )
        self._evaluations += 1
        self._cache_key = key
        self._cache_value = (predicted, jacobian)
        return self._cache_value

    def residuals(self, params: ArrayLike) -> np.ndarray:
        """``predicted - target`` at ``params``."""
        predicted, _ = self.evaluate(params)
        return predicted - self.target

    def rms(self, params: ArrayLike) -> float:
        """Root-mean-square residual at an arbitrary point."""
        return float(rms(self.residuals(params)))

    def solve(self, start: ArrayLike) -> SolverResult:
        x0 = np.asarray(start, dtype=float).reshape(-1)
        if x0.size > self.target.size:
            raise MalformedInputError(
                f"{x0.size} parameters cannot be fitted to {self.target.size} target values"
            )
        evaluations_before = self._evaluations

        optimum = least_squares(
            self.residuals,
            x0,
            jac=lambda x: self.evaluate(x)[1],
            method="lm",
            ftol=self.cost_tolerance,
            xtol=self.param_tolerance,
            gtol=self.gradient_tolerance,
            x_scale="jac",
            max_nfev=self.max_evaluations,
        )

        params = np.asarray(optimum.x, dtype=float)
        residuals = self.residuals(params)
        result = SolverResult(
            params=params,
            residuals=residuals,
            rms=float(rms(residuals)),
            evaluations=self._evaluations - evaluations_before,
            status=int(optimum.status),
            message=str(optimum.message),
        )
        logger.debug(
            "LM solve finished: params=%s rms=%.6g evaluations=%d status=%d (%s)",
            params,
            result.rms,
            result.evaluations,
            result.status,
            result.message,
        )
        return result


__all__ = ["LeastSquaresEngine", "SolverResult", "ModelFunction", "UNBOUNDED_EVALUATIONS"]
