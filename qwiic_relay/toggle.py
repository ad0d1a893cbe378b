"""
One semantic relay transition against the transport.

Single-relay boards take a direct on/off write. The dual and quad boards only
understand "toggle relay N", so reaching an absolute state means reading first
and toggling only when the relay is wrong. Toggling an already-correct relay
would invert it.
"""

import time
import logging

from .boards import (
    BoardModel, RelayState, ReadState, SetRelay, ToggleAll, ToggleRelay,
    WriteAllOff, WriteAllOn, resolve,
)


class ToggleStateMachine:
    def __init__(self, transport, board, timing):
        self.transport = transport
        self.board = board
        self.timing = timing
        self.writes = 0
        self.reads = 0

    def read_state(self, relay):
        register = resolve(self.board, ReadState(relay))[0]
        value = self.transport.read_byte(register)
        self.reads += 1
        return RelayState.from_byte(value)

    def send(self, command, changes_state=False):
        """Resolve a command and issue it as one bus write."""
        payload = resolve(self.board, command)
        if len(payload) == 1:
            self.transport.write_byte(payload[0])
        else:
            self.transport.write_byte(payload[0], payload[1])
        self.writes += 1
        time.sleep(self.timing.write_delay)
        if changes_state:
            time.sleep(self.timing.state_change_delay)

    def write_desired(self, relay, desired):
        """
        Drive one relay towards the desired state.
        Returns True if a bus write was issued, False for a no-op.
        """
        if self.board is BoardModel.SINGLE:
            self.send(SetRelay(relay, desired), changes_state=True)
            return True

        current = self.read_state(relay)
        if current == desired:
            logging.debug(f"Relay {relay} already {desired}")
            return False

        self.send(ToggleRelay(relay), changes_state=True)
        return True

    def write_all(self, state):
        command = WriteAllOn() if state is RelayState.ON else WriteAllOff()
        self.send(command, changes_state=True)

    def toggle_all(self):
        self.send(ToggleAll(), changes_state=True)
