import time
import logging

from . import config, utils
from .boards import BoardModel, RelayState
from .errors import TransportError

# Status byte a multi-relay board reports for a closed relay
MULTI_STATUS_ON = 0x0F
SIMULATED_VERSION = 0x10


# --- Simulated Board (stands in for I2CTransport without hardware) ---
class SimulatedBoard:
    """
    In-memory relay board that interprets the command table like the firmware.

    Fault knobs:
        drop_writes: number of upcoming state-changing writes silently ignored
        stuck: relays whose state never changes
        settle_s: a change becomes visible on reads only after this long
        fail_writes / fail_reads: number of upcoming calls that raise TransportError
    """

    def __init__(self, board=BoardModel.QUAD, address=None, settle_s=0.0):
        self.board = board
        self.address = address if address is not None else board.default_address
        self.settle_s = settle_s
        self.version = SIMULATED_VERSION
        self.drop_writes = 0
        self.stuck = set()
        self.fail_writes = 0
        self.fail_reads = 0
        self.writes = []
        self.reads = []
        self.is_open = False
        self._actual = {n: False for n in range(1, board.relay_count + 1)}
        self._reported = dict(self._actual)
        self._changed_at = {n: 0.0 for n in self._actual}

    def open(self):
        self.is_open = True
        logging.info(f"Simulated {self.board.key} board opened at {utils.format_address(self.address)}.")

    def close(self):
        self.is_open = False
        logging.info("Simulated board closed.")

    def set_address(self, address):
        self.address = address

    # --- Test helpers ---

    def set_state(self, relay, state):
        """Force a relay state (visible immediately)."""
        self._actual[relay] = bool(state)
        self._reported[relay] = bool(state)

    def state_of(self, relay):
        """Physical state, ignoring settle time."""
        return RelayState.from_bool(self._actual[relay])

    def reset_log(self):
        self.writes = []
        self.reads = []

    # --- Transport protocol ---

    def write_byte(self, register, value=None):
        if self.fail_writes > 0:
            self.fail_writes -= 1
            raise TransportError(f"Simulated write failure ({utils.format_command(register, value)})")
        self.writes.append((register, value))

        if register == config.CMD_CHANGE_ADDRESS and value is not None:
            logging.info(f"Simulated board address -> {utils.format_address(value)}")
            self.address = value
            return

        if self.board is BoardModel.SINGLE:
            if register == config.CMD_SINGLE_ON:
                self._change({1: True})
            elif register == config.CMD_SINGLE_OFF:
                self._change({1: False})
            return

        count = self.board.relay_count
        if config.CMD_TOGGLE_BASE < register <= config.CMD_TOGGLE_BASE + count:
            relay = register - config.CMD_TOGGLE_BASE
            self._change({relay: not self._actual[relay]})
        elif register == config.CMD_ALL_ON:
            self._change({n: True for n in self._actual})
        elif register == config.CMD_ALL_OFF:
            self._change({n: False for n in self._actual})
        elif register == config.CMD_TOGGLE_ALL:
            self._change({n: not s for n, s in self._actual.items()})

    def read_byte(self, register):
        if self.fail_reads > 0:
            self.fail_reads -= 1
            raise TransportError(f"Simulated read failure (register {utils.format_byte(register)})")
        self.reads.append(register)

        if self.board is BoardModel.SINGLE:
            if register == config.CMD_SINGLE_VERSION:
                return self.version
            if register == config.CMD_SINGLE_STATUS:
                return config.STATUS_ON if self._visible(1) else config.STATUS_OFF
            return 0

        relay = register - config.CMD_STATUS_BASE
        if relay in self._actual:
            return MULTI_STATUS_ON if self._visible(relay) else config.STATUS_OFF
        return 0

    # --- Internals ---

    def _change(self, new_states):
        if self.drop_writes > 0:
            self.drop_writes -= 1
            logging.debug("Simulated board dropped a write.")
            return
        now = time.monotonic()
        for relay, state in new_states.items():
            if relay in self.stuck:
                continue
            self._actual[relay] = state
            self._changed_at[relay] = now

    def _visible(self, relay):
        if time.monotonic() - self._changed_at[relay] >= self.settle_s:
            self._reported[relay] = self._actual[relay]
        return self._reported[relay]
