"""
Board models and the command/address table.

Each board model carries its relay count and addresses. resolve() turns a
semantic command into the exact bytes the firmware expects. The numeric values
must stay bit-for-bit identical to the SparkFun firmware.
"""

import enum
from dataclasses import dataclass

from . import config
from .errors import InvalidConfiguration, InvalidRelay, UnsupportedCommand


class RelayState(enum.Enum):
    OFF = config.STATUS_OFF
    ON = config.STATUS_ON

    @classmethod
    def from_byte(cls, value):
        """Status registers report 0 for off and anything else for on."""
        return cls.OFF if value == config.STATUS_OFF else cls.ON

    @classmethod
    def from_bool(cls, value):
        return cls.ON if value else cls.OFF

    @property
    def byte(self):
        return self.value

    def inverted(self):
        return RelayState.OFF if self is RelayState.ON else RelayState.ON

    def __bool__(self):
        return self is RelayState.ON

    def __str__(self):
        return self.name


class BoardModel(enum.Enum):
    SINGLE = ("single", 1, True, config.ADDR_SINGLE)
    DUAL_SOLID_STATE = ("dual_solid_state", 2, False, config.ADDR_DUAL_SOLID_STATE)
    QUAD = ("quad", 4, True, config.ADDR_QUAD)
    QUAD_SOLID_STATE = ("quad_solid_state", 4, False, config.ADDR_QUAD_SOLID_STATE)

    def __init__(self, key, relay_count, mechanical, addresses):
        self.key = key
        self.relay_count = relay_count
        self.mechanical = mechanical
        self.addresses = addresses

    @property
    def default_address(self):
        return self.addresses[0]

    @property
    def toggle_only(self):
        """Multi-relay boards only expose a per-relay toggle."""
        return self.relay_count > 1

    @classmethod
    def from_key(cls, key):
        for model in cls:
            if model.key == key:
                return model
        raise InvalidConfiguration(f"Unknown board model '{key}'")


# --- Commands ---

@dataclass(frozen=True)
class ToggleRelay:
    relay: int


@dataclass(frozen=True)
class SetRelay:
    relay: int
    state: RelayState


@dataclass(frozen=True)
class ReadState:
    relay: int


@dataclass(frozen=True)
class ReadStatus:
    pass


@dataclass(frozen=True)
class ReadVersion:
    pass


@dataclass(frozen=True)
class WriteAllOn:
    pass


@dataclass(frozen=True)
class WriteAllOff:
    pass


@dataclass(frozen=True)
class ToggleAll:
    pass


@dataclass(frozen=True)
class ChangeAddress:
    new_address: int


def check_relay(board, relay):
    if isinstance(relay, bool) or not isinstance(relay, int):
        raise InvalidRelay(relay, board.relay_count)
    if relay < 1 or relay > board.relay_count:
        raise InvalidRelay(relay, board.relay_count)
    return relay


def check_address(address):
    if isinstance(address, bool) or not isinstance(address, int):
        raise InvalidConfiguration(f"I2C address must be an integer, got {address!r}")
    if not (config.ADDRESS_MIN <= address <= config.ADDRESS_MAX):
        raise InvalidConfiguration(
            f"I2C address must be between 0x{config.ADDRESS_MIN:02X} and "
            f"0x{config.ADDRESS_MAX:02X}, got 0x{address:02X}"
        )
    return address


def _unsupported(board, command):
    return UnsupportedCommand(
        f"{type(command).__name__} is not supported on {board.key} boards"
    )


def resolve(board, command):
    """
    Map (board, command) to the wire bytes.
    A single byte is a bare command; two bytes are register + value.
    """
    single = board is BoardModel.SINGLE

    if isinstance(command, ChangeAddress):
        return bytes([config.CMD_CHANGE_ADDRESS, check_address(command.new_address)])

    if isinstance(command, ReadState):
        relay = check_relay(board, command.relay)
        if single:
            return bytes([config.CMD_SINGLE_STATUS])
        return bytes([config.CMD_STATUS_BASE + relay])

    if isinstance(command, ToggleRelay):
        relay = check_relay(board, command.relay)
        if single:
            raise _unsupported(board, command)
        return bytes([config.CMD_TOGGLE_BASE + relay])

    if isinstance(command, SetRelay):
        check_relay(board, command.relay)
        if not single:
            raise _unsupported(board, command)
        if command.state is RelayState.ON:
            return bytes([config.CMD_SINGLE_ON])
        return bytes([config.CMD_SINGLE_OFF])

    if isinstance(command, WriteAllOn):
        return bytes([config.CMD_SINGLE_ON if single else config.CMD_ALL_ON])

    if isinstance(command, WriteAllOff):
        return bytes([config.CMD_SINGLE_OFF if single else config.CMD_ALL_OFF])

    if isinstance(command, ToggleAll):
        if single:
            raise _unsupported(board, command)
        return bytes([config.CMD_TOGGLE_ALL])

    # 0x04 toggles relay 4 on the multi-relay boards, so only the single
    # relay answers version and status reads.
    if isinstance(command, ReadVersion):
        if not single:
            raise _unsupported(board, command)
        return bytes([config.CMD_SINGLE_VERSION])

    if isinstance(command, ReadStatus):
        if not single:
            raise _unsupported(board, command)
        return bytes([config.CMD_SINGLE_STATUS])

    raise UnsupportedCommand(f"Unknown command {command!r}")
