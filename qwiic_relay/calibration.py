"""
Timing auto-calibration.

Candidate profiles are tried from fastest to slowest. Each candidate must
carry the probe relay to the opposite state and back, both transitions
verified on the first check with no retries. The probe relay is put back in
the state it was found in on every exit path, using the full policy.
"""

import logging
from dataclasses import dataclass

from . import config
from .boards import RelayState, check_relay
from .errors import InvalidConfiguration, StateVerificationFailed, VerificationTimeout
from .timing import CALIBRATION_CANDIDATES, TimingProfile
from .toggle import ToggleStateMachine
from .verification import VerificationEngine, VerificationPolicy


@dataclass(frozen=True)
class CalibrationReport:
    success: bool
    profile: TimingProfile
    tried: tuple
    original_state: RelayState


class TimingCalibrator:
    def __init__(self, transport, board, timing, policy):
        self.transport = transport
        self.board = board
        self.timing = timing
        # Calibration is meaningless without read-back
        self.policy = policy if policy.enabled else VerificationPolicy.strict()

    def _machine(self, timing):
        return ToggleStateMachine(self.transport, self.board, timing)

    def _engine(self, timing):
        # One check per transition, no retries
        return VerificationEngine(self._machine(timing), self.policy.with_max_retries(0))

    def calibrate(self, probe_relay=config.CALIBRATION_PROBE_RELAY,
                  candidates=CALIBRATION_CANDIDATES,
                  attempts_per_candidate=config.CALIBRATION_ATTEMPTS):
        check_relay(self.board, probe_relay)
        candidates = tuple(candidates)
        if not candidates:
            raise InvalidConfiguration("No calibration candidates given")
        if attempts_per_candidate < 1:
            raise InvalidConfiguration("attempts_per_candidate must be at least 1")
        for candidate in candidates:
            candidate.validate(self.board)
        self.policy.validate()

        original = self._machine(self.timing).read_state(probe_relay)
        logging.info(f"Calibration: probe relay {probe_relay} is {original}, "
                     f"current timing {self.timing.describe()}")

        adopted = None
        tried = []
        try:
            for candidate in candidates:
                tried.append(candidate)
                if self._candidate_works(candidate, probe_relay, original, attempts_per_candidate):
                    adopted = candidate
                    break
        finally:
            self._restore(adopted or self._slowest(tried), probe_relay, original)

        if adopted is None:
            logging.warning(f"Calibration failed after {len(tried)} candidates; "
                            f"keeping {self.timing.describe()}")
            return CalibrationReport(False, self.timing, tuple(tried), original)

        logging.info(f"Calibration: adopted {adopted.describe()}")
        return CalibrationReport(True, adopted, tuple(tried), original)

    def _candidate_works(self, candidate, relay, original, attempts):
        logging.info(f"Calibration: trying {candidate.describe()}")
        engine = self._engine(candidate)
        for attempt in range(1, attempts + 1):
            try:
                engine.apply(relay, original.inverted(), operation="calibrate")
                engine.apply(relay, original, operation="calibrate")
                return True
            except (StateVerificationFailed, VerificationTimeout) as e:
                logging.warning(f"Calibration: {candidate.name} attempt {attempt}/{attempts} failed: {e}")
        return False

    def _slowest(self, tried):
        profiles = list(tried) + [self.timing]
        return max(profiles, key=lambda p: (p.state_change_delay_ms, p.write_delay_us))

    def _restore(self, timing, relay, original):
        machine = self._machine(timing)
        if machine.read_state(relay) == original:
            return
        logging.info(f"Calibration: restoring relay {relay} to {original}")
        VerificationEngine(machine, self.policy).apply(relay, original, operation="calibration restore")
