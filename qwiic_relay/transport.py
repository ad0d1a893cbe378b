import logging

from smbus2 import SMBus

from . import config, utils
from .errors import TransportError


class I2CTransport:
    """
    One relay board on an I2C bus (smbus2).
    Every call is a single bus transaction. No retries at this level;
    failures are raised as TransportError.
    """

    def __init__(self, address, bus=config.I2C_BUS):
        self.address = address
        self.bus_id = bus
        self._bus = None

    def open(self):
        if self._bus is not None:
            return
        logging.info(f"Opening I2C bus {self.bus_id} for device {utils.format_address(self.address)}...")
        try:
            self._bus = SMBus(self.bus_id)
        except FileNotFoundError as e:
            raise TransportError(f"I2C bus {self.bus_id} not found") from e
        except PermissionError as e:
            raise TransportError(
                f"Permission denied opening I2C bus {self.bus_id} (is the user in the i2c group?)"
            ) from e
        except OSError as e:
            raise TransportError(f"Failed to open I2C bus {self.bus_id}: {e}") from e

    def close(self):
        if self._bus is not None:
            try:
                self._bus.close()
            finally:
                self._bus = None
            logging.info(f"I2C bus {self.bus_id} closed.")

    @property
    def is_open(self):
        return self._bus is not None

    def _require_bus(self):
        if self._bus is None:
            self.open()
        return self._bus

    def write_byte(self, register, value=None):
        """Send a bare command byte, or register + value when value is given."""
        bus = self._require_bus()
        try:
            if value is None:
                bus.write_byte(self.address, register)
            else:
                bus.write_byte_data(self.address, register, value)
        except OSError as e:
            raise TransportError(
                f"I2C write {utils.format_command(register, value)} to "
                f"{utils.format_address(self.address)} failed: {e}"
            ) from e

    def read_byte(self, register):
        bus = self._require_bus()
        try:
            return bus.read_byte_data(self.address, register)
        except OSError as e:
            raise TransportError(
                f"I2C read of register {utils.format_byte(register)} from "
                f"{utils.format_address(self.address)} failed: {e}"
            ) from e

    def set_address(self, address):
        self.address = address

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
