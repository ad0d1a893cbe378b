"""Timing profiles: how long to wait after bus writes and relay changes."""

from dataclasses import dataclass, replace

from . import config
from .errors import InvalidConfiguration


@dataclass(frozen=True)
class TimingProfile:
    write_delay_us: int = config.WRITE_DELAY_US
    state_change_delay_ms: int = config.STATE_CHANGE_DELAY_MS
    init_delay_ms: int = config.INIT_DELAY_MS
    address_change_delay_ms: int = config.ADDRESS_CHANGE_DELAY_MS
    name: str = "standard"

    @classmethod
    def standard(cls):
        return cls()

    @classmethod
    def for_solid_state(cls):
        # No mechanical contacts to settle
        return cls(5, 5, 100, name="solid_state")

    @classmethod
    def for_mechanical(cls):
        return cls(15, 20, 250, name="mechanical")

    @classmethod
    def aggressive(cls):
        return cls(2, 2, 100, name="aggressive")

    @classmethod
    def conservative(cls):
        return cls(25, 30, 300, name="conservative")

    @classmethod
    def for_board(cls, board):
        return cls.for_mechanical() if board.mechanical else cls.for_solid_state()

    @classmethod
    def with_timing(cls, write_delay_us, state_change_delay_ms, init_delay_ms):
        profile = cls(write_delay_us, state_change_delay_ms, init_delay_ms, name="custom")
        profile.validate()
        return profile

    def with_write_delay(self, delay_us):
        return replace(self, write_delay_us=delay_us, name="custom")

    def with_state_change_delay(self, delay_ms):
        return replace(self, state_change_delay_ms=delay_ms, name="custom")

    @property
    def write_delay(self):
        return self.write_delay_us / 1_000_000

    @property
    def state_change_delay(self):
        return self.state_change_delay_ms / 1000

    @property
    def init_delay(self):
        return self.init_delay_ms / 1000

    @property
    def address_change_delay(self):
        return self.address_change_delay_ms / 1000

    def validate(self, board=None):
        for field_name in ("write_delay_us", "state_change_delay_ms",
                           "init_delay_ms", "address_change_delay_ms"):
            value = getattr(self, field_name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidConfiguration(
                    f"{field_name} must be a non-negative integer, got {value!r}"
                )
        if board is not None and board.mechanical and self.state_change_delay_ms == 0:
            raise InvalidConfiguration(
                f"{board.key} boards have mechanical relays and need a non-zero state change delay"
            )
        return self

    def describe(self):
        return (f"{self.name} (write={self.write_delay_us}us, "
                f"state_change={self.state_change_delay_ms}ms, init={self.init_delay_ms}ms)")


# Fastest first
CALIBRATION_CANDIDATES = (
    TimingProfile.aggressive(),
    TimingProfile.for_solid_state(),
    TimingProfile.standard(),
    TimingProfile.for_mechanical(),
    TimingProfile.conservative(),
)
