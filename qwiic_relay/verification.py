"""
State verification after relay writes.

VerificationEngine.apply() writes the desired state, waits for it to settle,
reads it back and retries on mismatch. Two independent bounds apply: the retry
count and a wall-clock deadline. Whichever trips first decides the error, so
callers can tell "ran out of attempts" (StateVerificationFailed) from "ran out
of time" (VerificationTimeout). Transport errors are never retried here.
"""

import enum
import time
import logging
from dataclasses import dataclass, replace

from . import config
from .boards import RelayState
from .errors import InvalidConfiguration, StateVerificationFailed, VerificationTimeout


class VerificationMode(enum.Enum):
    STRICT = "strict"
    LENIENT = "lenient"
    DISABLED = "disabled"


@dataclass(frozen=True)
class VerificationPolicy:
    mode: VerificationMode = VerificationMode.STRICT
    max_retries: int = config.MAX_RETRIES
    retry_delay_ms: int = config.RETRY_DELAY_MS
    verification_delay_ms: int = config.VERIFICATION_DELAY_MS
    timeout_ms: int = config.TIMEOUT_MS

    @classmethod
    def strict(cls):
        return cls()

    @classmethod
    def lenient(cls):
        return cls(
            mode=VerificationMode.LENIENT,
            max_retries=config.LENIENT_MAX_RETRIES,
            retry_delay_ms=config.LENIENT_RETRY_DELAY_MS,
            verification_delay_ms=config.LENIENT_VERIFICATION_DELAY_MS,
            timeout_ms=config.LENIENT_TIMEOUT_MS,
        )

    @classmethod
    def disabled(cls):
        return cls(VerificationMode.DISABLED, 0, 0, 0, 0)

    def with_mode(self, mode):
        return replace(self, mode=mode)

    def with_max_retries(self, retries):
        return replace(self, max_retries=retries)

    def with_retry_delay(self, delay_ms):
        return replace(self, retry_delay_ms=delay_ms)

    def with_verification_delay(self, delay_ms):
        return replace(self, verification_delay_ms=delay_ms)

    def with_timeout(self, timeout_ms):
        return replace(self, timeout_ms=timeout_ms)

    @property
    def enabled(self):
        return self.mode is not VerificationMode.DISABLED

    @property
    def retry_delay(self):
        return self.retry_delay_ms / 1000

    @property
    def verification_delay(self):
        return self.verification_delay_ms / 1000

    @property
    def timeout(self):
        return self.timeout_ms / 1000

    def validate(self):
        if not isinstance(self.mode, VerificationMode):
            raise InvalidConfiguration(f"Unknown verification mode {self.mode!r}")
        for field_name in ("max_retries", "retry_delay_ms", "verification_delay_ms", "timeout_ms"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidConfiguration(
                    f"{field_name} must be a non-negative integer, got {value!r}"
                )
        if self.enabled and self.timeout_ms <= self.verification_delay_ms:
            raise InvalidConfiguration(
                f"timeout ({self.timeout_ms}ms) must exceed the verification delay "
                f"({self.verification_delay_ms}ms)"
            )
        return self


@dataclass(frozen=True)
class ApplyResult:
    relay: int
    state: RelayState
    attempts: int
    checks: int
    writes: int
    reads: int
    elapsed_s: float


class VerificationEngine:
    def __init__(self, machine, policy):
        self.machine = machine
        self.policy = policy

    def apply(self, relay, desired, operation=None):
        """
        Drive relay to desired and confirm it on the hardware.
        Returns an ApplyResult, raises StateVerificationFailed / VerificationTimeout
        when the relay cannot be confirmed, TransportError when the bus fails.

        VerificationTimeout is raised either once the deadline has passed or as
        soon as a mismatch leaves too little time for retry_delay plus another
        verification_delay. In the second case the deadline has not been reached
        yet, and the relay may still settle into the desired state afterwards.
        """
        policy = self.policy
        machine = self.machine
        if operation is None:
            operation = "set_relay_on" if desired is RelayState.ON else "set_relay_off"

        start = time.monotonic()
        deadline = start + policy.timeout
        writes_before = machine.writes
        reads_before = machine.reads
        attempts = 0
        checks = 0

        def result():
            return ApplyResult(
                relay=relay,
                state=desired,
                attempts=attempts,
                checks=checks,
                writes=machine.writes - writes_before,
                reads=machine.reads - reads_before,
                elapsed_s=time.monotonic() - start,
            )

        while True:
            # Writing
            machine.write_desired(relay, desired)
            attempts += 1

            if not policy.enabled:
                return result()

            # Settling
            time.sleep(policy.verification_delay)

            # Checking
            actual = machine.read_state(relay)
            checks += 1
            if actual == desired:
                if attempts > 1:
                    logging.info(f"Relay {relay} verified {desired} after {attempts} attempts")
                return result()

            logging.warning(
                f"Relay {relay}: expected {desired}, read {actual} "
                f"(attempt {attempts}/{policy.max_retries + 1})"
            )

            now = time.monotonic()
            if now >= deadline:
                logging.error(f"{operation} relay {relay}: timed out after {policy.timeout_ms}ms")
                raise VerificationTimeout(relay, operation, policy.timeout_ms, attempts)

            if attempts > policy.max_retries:
                if policy.mode is VerificationMode.LENIENT:
                    logging.warning(f"Lenient verification exhausted for relay {relay}")
                logging.error(f"{operation} relay {relay}: state still {actual} after {attempts} attempts")
                raise StateVerificationFailed(relay, bool(desired), bool(actual), attempts)

            # Another check could not finish before the deadline
            if now + policy.retry_delay + policy.verification_delay > deadline:
                logging.error(f"{operation} relay {relay}: next attempt would end past the "
                              f"{policy.timeout_ms}ms deadline")
                raise VerificationTimeout(relay, operation, policy.timeout_ms, attempts)

            # RetryWait
            time.sleep(policy.retry_delay)
