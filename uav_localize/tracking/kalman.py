"""
Linear Kalman Filter for 3-D Target Localization

Implements a Constant Velocity (CV) motion model for tracking a target
observed by a depth camera. Uses standard Kalman filter equations for
prediction and correction.

State Vector: [x, y, z, vx, vy, vz]^T
    - x, y, z: Position in the world frame (meters)
    - vx, vy, vz: Velocity components (m/s)

Measurement: [x, y, z] position with a full 3x3 covariance supplied by the
measurement itself (the observation noise differs per detection).

Reference:
    - Bar-Shalom, Y. "Estimation with Applications to Tracking and Navigation", 2001
    - Bucy, R. S., Joseph, P. D. "Filtering for Stochastic Processes", 1968
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ..exceptions import CovarianceDegeneracy

logger = logging.getLogger(__name__)

N_STATES = 6
N_MEASUREMENTS = 3

# Relative tolerance on the smallest eigenvalue of a covariance
PSD_TOLERANCE = 1e-9


@dataclass
class Measurement:
    """
    A single world-frame position observation.

    Attributes:
        position: Observed position [x, y, z] (meters)
        covariance: Observation covariance (3x3)
        stamp: Acquisition time (seconds)
    """

    position: np.ndarray
    covariance: np.ndarray
    stamp: float = 0.0

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=np.float64).reshape(N_MEASUREMENTS)
        self.covariance = np.asarray(self.covariance, dtype=np.float64).reshape(
            N_MEASUREMENTS, N_MEASUREMENTS
        )


@dataclass
class KalmanState:
    """
    State container for Kalman Filter.

    Attributes:
        x: State vector [x, y, z, vx, vy, vz]
        P: State covariance matrix (6x6)
    """

    x: np.ndarray  # State vector
    P: np.ndarray  # Covariance matrix


def check_covariance(P: np.ndarray, name: str = "covariance") -> np.ndarray:
    """
    Validate a covariance matrix and return its symmetrized form.

    Raises:
        CovarianceDegeneracy: if P has non-finite entries or a negative
            eigenvalue beyond round-off.
    """
    if not np.all(np.isfinite(P)):
        raise CovarianceDegeneracy(f"{name} contains non-finite entries")

    P_sym = 0.5 * (P + P.T)
    eigenvalues = np.linalg.eigvalsh(P_sym)
    scale = max(1.0, float(np.max(np.abs(eigenvalues))))
    if eigenvalues[0] < -PSD_TOLERANCE * scale:
        raise CovarianceDegeneracy(
            f"{name} is not positive semi-definite (min eigenvalue {eigenvalues[0]:.3e})"
        )
    return P_sym


class LinearKalmanFilter:
    """
    Linear Kalman Filter for 3D target localization.

    Uses Constant Velocity (CV) motion model:
        p_{k+1} = p_k + v_k * dt
        v_{k+1} = v_k (constant)

    Measurement model:
        z = [x, y, z] (position only)

    The filter itself holds no track state; one instance is shared by every
    track in a bank and operates on KalmanState containers.

    Example:
        >>> kf = LinearKalmanFilter(process_noise=0.01, init_vel_cov=1.0)
        >>> state = kf.initialize(Measurement([0, 0, 5], np.eye(3) * 0.1))
        >>> predicted = kf.predict(state, dt=0.1)
        >>> corrected = kf.update(predicted, Measurement([0.05, 0, 5], np.eye(3) * 0.1))
    """

    def __init__(self, process_noise: float = 0.0, init_vel_cov: float = 1.0) -> None:
        """
        Initialize Kalman Filter.

        Args:
            process_noise: Diagonal process noise added on every predict step
            init_vel_cov: Velocity variance of a freshly initialized state
        """
        if process_noise < 0:
            raise ValueError(f"process_noise must be non-negative, got {process_noise}")
        if init_vel_cov < 0:
            raise ValueError(f"init_vel_cov must be non-negative, got {init_vel_cov}")

        self.process_noise = process_noise
        self.init_vel_cov = init_vel_cov

        # Measurement matrix H: We only observe position [x, y, z]
        self.H = np.hstack([np.eye(N_MEASUREMENTS), np.zeros((N_MEASUREMENTS, 3))])

        # Process noise covariance, independent of dt
        self.R = np.eye(N_STATES) * process_noise

    def initialize(self, measurement: Measurement) -> KalmanState:
        """
        Initialize a new track state from a measurement.

        Position block is seeded with the measurement, velocity is zero with
        `init_vel_cov` variance on each axis.
        """
        x = np.zeros(N_STATES)
        x[:3] = measurement.position

        P = np.zeros((N_STATES, N_STATES))
        P[:3, :3] = measurement.covariance
        P[3:, 3:] = np.eye(3) * self.init_vel_cov

        return KalmanState(x=x, P=check_covariance(P, "initial covariance"))

    @staticmethod
    def transition_matrix(dt: float) -> np.ndarray:
        """
        Get state transition matrix A for time step dt.

        | I3  dt*I3 |
        | 0     I3  |
        """
        A = np.eye(N_STATES)
        A[:3, 3:] = np.eye(3) * dt
        return A

    def predict(self, state: KalmanState, dt: float) -> KalmanState:
        """
        Predict state to next time step.

        Prediction equations:
            x_pred = A * x
            P_pred = A * P * A^T + R

        Raises:
            ValueError: if dt is negative
            CovarianceDegeneracy: if the predicted covariance is degenerate
        """
        if dt < 0:
            raise ValueError(f"Prediction step must be non-negative, got dt={dt}")

        A = self.transition_matrix(dt)
        x_pred = A @ state.x
        P_pred = A @ state.P @ A.T + self.R

        return KalmanState(x=x_pred, P=check_covariance(P_pred, "predicted covariance"))

    def update(self, state: KalmanState, measurement: Measurement) -> KalmanState:
        """
        Correct state with a measurement.

        Update equations:
            y = z - H * x          (innovation)
            S = H * P * H^T + Q    (innovation covariance, Q = measurement covariance)
            K = P * H^T * S^-1     (Kalman gain)
            x_new = x + K * y
            P_new = (I - K * H) * P * (I - K * H)^T + K * Q * K^T

        Raises:
            CovarianceDegeneracy: if S is singular or the result is degenerate
        """
        Q = measurement.covariance

        y = measurement.position - self.H @ state.x
        S = self.H @ state.P @ self.H.T + Q

        try:
            K = np.linalg.solve(S.T, (state.P @ self.H.T).T).T
        except np.linalg.LinAlgError as exc:
            raise CovarianceDegeneracy(f"innovation covariance is singular: {exc}") from exc

        x_new = state.x + K @ y

        # Joseph form keeps P symmetric PSD under round-off
        I_KH = np.eye(N_STATES) - K @ self.H
        P_new = I_KH @ state.P @ I_KH.T + K @ Q @ K.T

        return KalmanState(x=x_new, P=check_covariance(P_new, "corrected covariance"))

    @staticmethod
    def uncertainty(state: KalmanState) -> float:
        """
        Square root of the determinant of the position covariance block.

        A negative determinant marks a degenerate block and yields inf, so
        the track is pruned rather than selected.
        """
        det = np.linalg.det(state.P[:3, :3])
        if det < 0:
            logger.warning("Negative position covariance determinant %.3e", det)
            return float("inf")
        return float(np.sqrt(det))

    @staticmethod
    def get_position(state: KalmanState) -> Tuple[float, float, float]:
        """Extract position from state."""
        return (state.x[0], state.x[1], state.x[2])

    @staticmethod
    def get_velocity(state: KalmanState) -> Tuple[float, float, float]:
        """Extract velocity from state."""
        return (state.x[3], state.x[4], state.x[5])
