# Qwiic Relay Configuration Constants

# I2C Settings
I2C_BUS = 1              # /dev/i2c-1 on a Raspberry Pi
ADDRESS_MIN = 0x07       # Lowest software-settable address
ADDRESS_MAX = 0x78       # Highest software-settable address

# Board Addresses (default, jumper closed)
ADDR_SINGLE = (0x18, 0x19)
ADDR_QUAD = (0x6D, 0x6C)
ADDR_DUAL_SOLID_STATE = (0x0A, 0x0B)
ADDR_QUAD_SOLID_STATE = (0x08, 0x09)

# Command Codes (single relay board)
CMD_SINGLE_OFF     = 0x00
CMD_SINGLE_ON      = 0x01
CMD_SINGLE_VERSION = 0x04
CMD_SINGLE_STATUS  = 0x05

# Command Codes (dual / quad boards)
CMD_TOGGLE_BASE  = 0x00  # + relay number (1..4)
CMD_STATUS_BASE  = 0x04  # + relay number (1..4)
CMD_ALL_OFF      = 0x0A
CMD_ALL_ON       = 0x0B
CMD_TOGGLE_ALL   = 0x0C

CMD_CHANGE_ADDRESS = 0xC7

# Relay status byte
STATUS_OFF = 0x00
STATUS_ON  = 0x01

# Timing (standard profile)
WRITE_DELAY_US = 10
STATE_CHANGE_DELAY_MS = 10
INIT_DELAY_MS = 200
ADDRESS_CHANGE_DELAY_MS = 100

# Verification (strict policy)
MAX_RETRIES = 3
RETRY_DELAY_MS = 50
VERIFICATION_DELAY_MS = 20
TIMEOUT_MS = 1000

# Verification (lenient policy, noisy buses)
LENIENT_MAX_RETRIES = 5
LENIENT_RETRY_DELAY_MS = 100
LENIENT_VERIFICATION_DELAY_MS = 50
LENIENT_TIMEOUT_MS = 2000

# Calibration
CALIBRATION_ATTEMPTS = 2
CALIBRATION_PROBE_RELAY = 1
