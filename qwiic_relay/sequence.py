import time
import logging
from dataclasses import dataclass

from . import utils, io
from .errors import RelayError


@dataclass(frozen=True)
class CycleStats:
    operations: int
    failures: int
    total_s: float
    average_s: float
    aborted: bool


class RelaySequence:
    def __init__(self, controller, log_callback=None):
        """
        controller: QwiicRelay instance
        log_callback: function(msg) for progress output
        """
        self.ctrl = controller
        self.log_cb = log_callback
        self._abort_flag = False

    def log(self, msg):
        logging.info(msg)
        if self.log_cb:
            self.log_cb(msg)

    def abort(self):
        self._abort_flag = True
        self.log("Abort requested!")

    def _check_abort(self):
        if self._abort_flag:
            raise InterruptedError("Sequence aborted by user.")

    def _pause(self, duration):
        """Sliced wait with abort check."""
        end = time.monotonic() + duration
        while True:
            self._check_abort()
            remaining = end - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(0.05, remaining)) # 50ms slice

    def _record(self, log_path, relay, operation, result, duration_s, error=""):
        if not log_path:
            return
        cfg = self.ctrl.config
        io.append_to_log(log_path, {
            "timestamp": utils.get_timestamp_iso(),
            "board": cfg.board.key,
            "address": utils.format_address(self.ctrl.address),
            "relay": relay,
            "operation": operation,
            "result": "OK" if error == "" else "FAIL",
            "attempts": result.attempts if result is not None else "",
            "duration_ms": f"{duration_s * 1000:.2f}",
            "timing": cfg.timing.name,
            "error": error,
        })

    def _operate(self, relay, on, log_path):
        operation = "set_relay_on" if on else "set_relay_off"
        start = time.monotonic()
        try:
            if on:
                result = self.ctrl.set_relay_on(relay)
            else:
                result = self.ctrl.set_relay_off(relay)
        except RelayError as e:
            duration = time.monotonic() - start
            self.log(f"Relay {relay} {operation} failed: {e}")
            self._record(log_path, relay, operation, None, duration, str(e))
            return duration, False
        duration = time.monotonic() - start
        self._record(log_path, relay, operation, result, duration)
        return duration, True

    def run(self, relays, cycles, pause_s=0.0, log_path=None):
        """
        Switch each relay on then off, `cycles` times, through the verified path.
        Failures are counted and the run continues; the relays are switched
        off again when the run ends for any reason.
        """
        self._abort_flag = False
        relays = list(relays)
        if not relays:
            raise ValueError("No relays given for sequence.")
        if cycles < 1:
            raise ValueError("cycles must be at least 1")

        operations = 0
        failures = 0
        total = 0.0
        aborted = False

        try:
            self.log(f"Starting Sequence: relays={relays}, cycles={cycles}")

            for cycle in range(1, cycles + 1):
                for relay in relays:
                    for on in (True, False):
                        self._check_abort()
                        duration, ok = self._operate(relay, on, log_path)
                        operations += 1
                        total += duration
                        if not ok:
                            failures += 1
                        if pause_s:
                            self._pause(pause_s)
                self.log(f"Cycle {cycle}/{cycles} done ({failures} failures so far)")

            self.log("Sequence Complete.")

        except InterruptedError:
            self.log("Sequence Aborted!")
            aborted = True

        finally:
            for relay in relays:
                try:
                    self.ctrl.set_relay_off(relay)
                except RelayError as e:
                    self.log(f"Could not switch relay {relay} off after sequence: {e}")

        average = total / operations if operations else 0.0
        return CycleStats(operations, failures, total, average, aborted)
