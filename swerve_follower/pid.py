"""PID feedback controller used for remaining distance and heading.

The follower runs two single-input single-output controllers:
- Translation: drives remaining path distance to zero
- Heading: drives heading error to zero, with continuous (wrapping) input

Both report whether they are within a configurable tolerance of the setpoint,
which the follower uses to decide when the path is complete.
"""

import math
from typing import Dict, Optional

from .config import CONTROL_PERIOD_SECONDS, PID_INTEGRATOR_LIMIT
from .geometry import input_modulus


class PIDController:
    """PID controller with tolerance, continuous input and anti-windup.

    Control law:
        error = setpoint - measurement   (wrapped when continuous input is on)
        output = kp * error + ki * integral(error) + kd * d(error)/dt

    Attributes:
        kp: Proportional gain.
        ki: Integral gain.
        kd: Derivative gain.
        period: Default time step when calculate() is not given one (seconds).
        integrator_limit: Clamp applied to the accumulated integral (±).
    """

    def __init__(
        self,
        kp: float,
        ki: float = 0.0,
        kd: float = 0.0,
        period: float = CONTROL_PERIOD_SECONDS,
        integrator_limit: float = PID_INTEGRATOR_LIMIT,
    ):
        """Initialize the controller.

        Args:
            kp: Proportional gain. Must be finite and non-negative.
            ki: Integral gain. Must be finite and non-negative.
            kd: Derivative gain. Must be finite and non-negative.
            period: Nominal loop period in seconds, used when calculate()
                receives no dt. Must be positive.
            integrator_limit: Anti-windup bound on the integral term.

        Raises:
            ValueError: If a gain is negative or non-finite, or period is not positive.
        """
        for name, gain in (("kp", kp), ("ki", ki), ("kd", kd)):
            if gain is None or not math.isfinite(gain) or gain < 0.0:
                raise ValueError(f"PID gain {name} must be a finite non-negative number, got {gain}")
        if period <= 0.0:
            raise ValueError(f"PID period must be positive, got {period}")

        self.kp = float(kp)
        self.ki = float(ki)
        self.kd = float(kd)
        self.period = float(period)
        self.integrator_limit = float(integrator_limit)

        # Tolerances
        self.position_tolerance: float = 0.05
        self.velocity_tolerance: float = math.inf

        # Continuous input range (heading control)
        self.continuous: bool = False
        self.minimum_input: float = 0.0
        self.maximum_input: float = 0.0

        # Controller state
        self.setpoint: float = 0.0
        self.measurement: float = 0.0
        self.position_error: float = 0.0
        self.velocity_error: float = 0.0
        self.prev_error: float = 0.0
        self.total_error: float = 0.0
        self.have_measurement: bool = False
        self.have_setpoint: bool = False

    def set_tolerance(self, position_tolerance: float, velocity_tolerance: float = math.inf) -> None:
        self.position_tolerance = float(position_tolerance)
        self.velocity_tolerance = float(velocity_tolerance)

    def enable_continuous_input(self, minimum_input: float, maximum_input: float) -> None:
        """Treat the input range as circular (e.g. -π..π for headings)."""
        self.continuous = True
        self.minimum_input = float(minimum_input)
        self.maximum_input = float(maximum_input)

    def _wrap_error(self, error: float) -> float:
        if not self.continuous:
            return error
        half_range = (self.maximum_input - self.minimum_input) / 2.0
        return input_modulus(error, -half_range, half_range)

    def calculate(self, measurement: float, setpoint: float, dt: Optional[float] = None) -> float:
        """Compute the controller output for one cycle.

        Args:
            measurement: Current process value.
            setpoint: Desired process value.
            dt: Time since the previous call (seconds). Defaults to period.

        Returns:
            Controller output.
        """
        step = self.period if dt is None or dt <= 0.0 else float(dt)

        self.measurement = float(measurement)
        self.setpoint = float(setpoint)
        self.have_measurement = True
        self.have_setpoint = True

        self.prev_error = self.position_error
        self.position_error = self._wrap_error(self.setpoint - self.measurement)
        self.velocity_error = (self.position_error - self.prev_error) / step

        # Accumulate integral of error with anti-windup
        if self.ki > 0.0:
            self.total_error += self.position_error * step
            self.total_error = max(-self.integrator_limit, min(self.integrator_limit, self.total_error))

        return (
            self.kp * self.position_error
            + self.ki * self.total_error
            + self.kd * self.velocity_error
        )

    def at_setpoint(self) -> bool:
        """Whether the last error is within tolerance.

        Always False before the first calculate() call.
        """
        if not (self.have_measurement and self.have_setpoint):
            return False
        return (
            abs(self.position_error) < self.position_tolerance
            and abs(self.velocity_error) < self.velocity_tolerance
        )

    def reset(self) -> None:
        """Clear integral and derivative state.

        Call this when starting a new activation so no error history leaks
        between paths.
        """
        self.prev_error = 0.0
        self.position_error = 0.0
        self.velocity_error = 0.0
        self.total_error = 0.0
        self.have_measurement = False

    def get_diagnostics(self) -> Dict[str, float]:
        """Get diagnostic information for logging and debugging."""
        return {
            "setpoint": self.setpoint,
            "measurement": self.measurement,
            "position_error": self.position_error,
            "velocity_error": self.velocity_error,
            "total_error": self.total_error,
        }
