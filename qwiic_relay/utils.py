import os
import datetime


def get_timestamp_iso():
    """Return current timestamp in ISO 8601 format."""
    return datetime.datetime.now().isoformat()


def get_timestamp_file():
    """Return timestamp suitable for filenames (YYYYMMDD_HHMMSS)."""
    return datetime.datetime.now().strftime("%Y%m%d_%H%M%S")


def ensure_dir(directory):
    """Ensure a directory exists."""
    if directory and not os.path.exists(directory):
        os.makedirs(directory)


def format_byte(value):
    return f"0x{value:02X}"


def format_address(address):
    return f"0x{address:02X}"


def format_command(register, value=None):
    """
    Format a bus write for logs.
    'C7:09' for register + value, '0B' for a bare command byte.
    """
    if value is None:
        return f"{register:02X}"
    return f"{register:02X}:{value:02X}"
