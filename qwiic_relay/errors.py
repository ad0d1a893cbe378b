"""
Relay error taxonomy.

Every public operation either succeeds or raises one of these. Configuration
problems (InvalidRelay, InvalidConfiguration, UnsupportedCommand) are raised
before anything is sent on the bus.
"""


class RelayError(Exception):
    """Base class for all relay errors."""


class TransportError(RelayError):
    """Bus-level failure (no ack, bus busy, I/O fault)."""


class InvalidRelay(RelayError):
    """Relay index outside the configured board's relay count."""

    def __init__(self, relay, relay_count):
        self.relay = relay
        self.relay_count = relay_count
        super().__init__(f"Invalid relay {relay!r}: valid range is 1-{relay_count}")


class InvalidConfiguration(RelayError):
    """An address, timing or policy parameter violates a documented constraint."""

    def __str__(self):
        return f"Invalid configuration: {self.args[0]}" if self.args else "Invalid configuration"


class UnsupportedCommand(RelayError):
    """Command is not meaningful for the board model."""


def _on_off(state):
    return "ON" if state else "OFF"


class StateVerificationFailed(RelayError):
    """Retries exhausted while the hardware still disagrees with the command."""

    def __init__(self, relay, expected, actual, attempts):
        self.relay = relay
        self.expected = expected
        self.actual = actual
        self.attempts = attempts
        super().__init__(
            f"State verification failed for relay {relay}: "
            f"expected {_on_off(expected)}, got {_on_off(actual)} after {attempts} attempts"
        )


class VerificationTimeout(RelayError):
    """Deadline passed before success or before retries ran out."""

    def __init__(self, relay, operation, duration_ms, attempts=0):
        self.relay = relay
        self.operation = operation
        self.duration_ms = duration_ms
        self.attempts = attempts
        super().__init__(
            f"Timeout during {operation} for relay {relay}: exceeded {duration_ms}ms"
        )
