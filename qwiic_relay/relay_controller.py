import time
import threading
import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from . import config, utils
from .boards import (
    BoardModel, ChangeAddress, ReadStatus, ReadVersion, RelayState,
    check_address, check_relay, resolve,
)
from .calibration import TimingCalibrator
from .errors import InvalidConfiguration, InvalidRelay
from .timing import CALIBRATION_CANDIDATES, TimingProfile
from .toggle import ToggleStateMachine
from .transport import I2CTransport
from .verification import VerificationEngine, VerificationPolicy


@dataclass(frozen=True)
class RelayConfig:
    """
    Board model, timing and verification policy for one controller.
    Replaced as a whole, never edited in place.
    default_relay is used when a per-relay call omits the relay number;
    None means the relay number is required.
    """
    board: BoardModel = BoardModel.QUAD_SOLID_STATE
    timing: TimingProfile = field(default_factory=TimingProfile)
    verification: VerificationPolicy = field(default_factory=VerificationPolicy)
    default_relay: Optional[int] = None

    @classmethod
    def for_board(cls, board, verification=None, timing=None):
        return cls(
            board=board,
            timing=timing if timing is not None else TimingProfile.for_board(board),
            verification=verification if verification is not None else VerificationPolicy(),
            default_relay=1 if board is BoardModel.SINGLE else None,
        )

    @classmethod
    def with_verification(cls, board, verification):
        return cls(board=board, verification=verification,
                   default_relay=1 if board is BoardModel.SINGLE else None)

    @property
    def relay_count(self):
        return self.board.relay_count

    def validate(self):
        if not isinstance(self.board, BoardModel):
            raise InvalidConfiguration(f"Unknown board model {self.board!r}")
        self.timing.validate(self.board)
        self.verification.validate()
        if self.default_relay is not None:
            try:
                check_relay(self.board, self.default_relay)
            except InvalidRelay as e:
                raise InvalidConfiguration(f"default_relay: {e}") from e
        return self


class QwiicRelay:
    """
    Controller for one Qwiic relay board.

    Owns the transport and the active RelayConfig. Every public operation holds
    self.lock from start to finish: the read-then-toggle sequence on the dual
    and quad boards must not interleave with another caller, and configuration
    swaps wait for any operation in flight.
    """

    def __init__(self, relay_config=None, bus=config.I2C_BUS, address=None, transport=None):
        self.config = (relay_config if relay_config is not None else RelayConfig()).validate()
        if address is None:
            address = getattr(transport, "address", None) or self.config.board.default_address
        self.address = check_address(address)
        self.transport = transport if transport is not None else I2CTransport(self.address, bus)
        self.lock = threading.Lock()
        self.is_connected = False

    # --- Connection ---

    def connect(self):
        """Open the bus and wait for the board to come up."""
        logging.info(f"Connecting to {self.config.board.key} relay board at {utils.format_address(self.address)}...")
        with self.lock:
            self.transport.open()
            self.is_connected = True
        self.init()
        return True

    def init(self):
        """Wait init_delay for the board to set up."""
        time.sleep(self.config.timing.init_delay)

    def disconnect(self):
        with self.lock:
            self.transport.close()
            self.is_connected = False

    def close(self):
        self.disconnect()

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()

    # --- Internals (caller holds the lock) ---

    def _machine(self):
        return ToggleStateMachine(self.transport, self.config.board, self.config.timing)

    def _engine(self, machine=None):
        return VerificationEngine(machine or self._machine(), self.config.verification)

    def _relay(self, relay):
        if relay is None:
            relay = self.config.default_relay
            if relay is None:
                raise InvalidRelay(None, self.config.relay_count)
        return check_relay(self.config.board, relay)

    def _swap(self, what, update):
        with self.lock:
            new_config = update(self.config).validate()
            self.config = new_config
        logging.info(f"Relay config updated: {what}")
        return new_config

    # --- Relay control ---

    def apply(self, relay, state, operation=None):
        """Set a relay and confirm it on the hardware (per the verification policy)."""
        if not isinstance(state, RelayState):
            state = RelayState.from_bool(state)
        with self.lock:
            relay = self._relay(relay)
            result = self._engine().apply(relay, state, operation)
        logging.info(f"Relay {relay} -> {state} ({result.attempts} attempt(s), {result.elapsed_s * 1000:.1f}ms)")
        return result

    def set_relay_on(self, relay=None):
        return self.apply(relay, RelayState.ON, "set_relay_on")

    def set_relay_off(self, relay=None):
        return self.apply(relay, RelayState.OFF, "set_relay_off")

    def toggle_relay(self, relay=None):
        """Flip one relay (verified). Returns the new state as bool."""
        with self.lock:
            relay = self._relay(relay)
            machine = self._machine()
            target = machine.read_state(relay).inverted()
            self._engine(machine).apply(relay, target, "toggle_relay")
        logging.info(f"Relay {relay} toggled -> {target}")
        return bool(target)

    def get_relay_state(self, relay=None):
        """True if the relay is on."""
        with self.lock:
            relay = self._relay(relay)
            return bool(self._machine().read_state(relay))

    def get_relay_states(self):
        with self.lock:
            machine = self._machine()
            return {n: bool(machine.read_state(n)) for n in range(1, self.config.relay_count + 1)}

    def _write_all(self, state, verify, operation):
        with self.lock:
            machine = self._machine()
            machine.write_all(state)
            if verify and self.config.verification.enabled:
                engine = self._engine(machine)
                for relay in range(1, self.config.relay_count + 1):
                    engine.apply(relay, state, operation)
        logging.info(f"All relays -> {state}{' (verified)' if verify else ''}")

    def set_all_relays_on(self, verify=False):
        self._write_all(RelayState.ON, verify, "set_all_relays_on")

    def set_all_relays_off(self, verify=False):
        self._write_all(RelayState.OFF, verify, "set_all_relays_off")

    def toggle_all_relays(self):
        with self.lock:
            self._machine().toggle_all()
        logging.info("All relays toggled")

    # --- Board info ---

    def get_version(self):
        """Firmware version byte (single relay boards)."""
        with self.lock:
            register = resolve(self.config.board, ReadVersion())[0]
            return self.transport.read_byte(register)

    def get_status(self):
        """Raw status byte (single relay boards)."""
        with self.lock:
            register = resolve(self.config.board, ReadStatus())[0]
            return self.transport.read_byte(register)

    def change_i2c_address(self, new_address):
        """
        Permanently change the board's I2C address.
        The address is validated before anything is written; the controller
        talks to the new address afterwards.
        """
        command = ChangeAddress(check_address(new_address))
        with self.lock:
            self._machine().send(command)
            time.sleep(self.config.timing.address_change_delay)
            self.transport.set_address(new_address)
            old_address, self.address = self.address, new_address
        logging.warning(f"I2C address changed {utils.format_address(old_address)} -> "
                        f"{utils.format_address(new_address)}")

    # --- Configuration (hot-swap) ---

    def replace_config(self, relay_config):
        relay_config.validate()
        with self.lock:
            self.config = relay_config
        logging.info(f"Relay config replaced: board={relay_config.board.key}, "
                     f"timing={relay_config.timing.name}, verification={relay_config.verification.mode.value}")
        return relay_config

    def set_timing(self, timing):
        return self._swap("timing", lambda cfg: replace(cfg, timing=timing))

    def set_verification(self, verification):
        return self._swap("verification", lambda cfg: replace(cfg, verification=verification))

    def set_write_delay(self, delay_us):
        return self._swap(
            "write_delay", lambda cfg: replace(cfg, timing=cfg.timing.with_write_delay(delay_us)))

    def set_state_change_delay(self, delay_ms):
        return self._swap(
            "state_change_delay", lambda cfg: replace(cfg, timing=cfg.timing.with_state_change_delay(delay_ms)))

    # --- Calibration ---

    def calibrate_timing(self, probe_relay=config.CALIBRATION_PROBE_RELAY,
                         candidates=CALIBRATION_CANDIDATES,
                         attempts_per_candidate=config.CALIBRATION_ATTEMPTS,
                         policy=None):
        with self.lock:
            calibrator = TimingCalibrator(
                self.transport, self.config.board, self.config.timing,
                policy if policy is not None else self.config.verification,
            )
            report = calibrator.calibrate(probe_relay, candidates, attempts_per_candidate)
            if report.success:
                self.config = replace(self.config, timing=report.profile)
        return report

    def auto_detect_timing(self):
        """True if a working timing profile was found and installed."""
        return self.calibrate_timing().success
