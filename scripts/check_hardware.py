import sys
import argparse
import logging
# Add project root to path
sys.path.append(".")

from qwiic_relay import config
from qwiic_relay.boards import BoardModel
from qwiic_relay.errors import RelayError
from qwiic_relay.relay_controller import QwiicRelay, RelayConfig
from qwiic_relay.simulator import SimulatedBoard
from qwiic_relay.verification import VerificationPolicy

POLICIES = {
    "strict": VerificationPolicy.strict,
    "lenient": VerificationPolicy.lenient,
    "disabled": VerificationPolicy.disabled,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Interactive Qwiic relay board check")
    parser.add_argument("--board", choices=[m.key for m in BoardModel], default="quad_solid_state")
    parser.add_argument("--bus", type=int, default=config.I2C_BUS)
    parser.add_argument("--address", type=lambda s: int(s, 0), default=None,
                        help="I2C address, e.g. 0x08 (default: board default)")
    parser.add_argument("--verification", choices=sorted(POLICIES), default="strict")
    parser.add_argument("--simulate", action="store_true", help="Use a simulated board")
    return parser.parse_args(argv)


def read_relay(prompt="Relay: "):
    try:
        return int(input(prompt))
    except ValueError:
        print("Invalid integer")
        return None


def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    args = parse_args(argv)
    board = BoardModel.from_key(args.board)
    relay_config = RelayConfig.for_board(board, verification=POLICIES[args.verification]())

    print("=== Qwiic Relay Hardware Check ===")
    transport = SimulatedBoard(board, args.address) if args.simulate else None
    try:
        ctrl = QwiicRelay(relay_config, bus=args.bus, address=args.address, transport=transport)
        print(f"Connecting to {board.key} board...")
        ctrl.connect()
        print("Connected!")
    except RelayError as e:
        print(f"Connection Failed: {e}")
        return 1

    while True:
        print("\n--- MENU ---")
        print("[1] Relay ON")
        print("[2] Relay OFF")
        print("[3] Toggle relay")
        print("[4] ALL ON")
        print("[5] ALL OFF")
        print("[6] Firmware version")
        print("[7] Change I2C address")
        print("[8] Auto-detect timing")
        print("[s] Status")
        print("[q] Quit")

        choice = input("Select: ").strip().lower()

        try:
            if choice == 'q':
                ctrl.disconnect()
                break

            elif choice in ('1', '2', '3'):
                relay = read_relay()
                if relay is None:
                    continue
                if choice == '1':
                    result = ctrl.set_relay_on(relay)
                    print(f">> OK ON ({result.attempts} attempt(s))")
                elif choice == '2':
                    result = ctrl.set_relay_off(relay)
                    print(f">> OK OFF ({result.attempts} attempt(s))")
                else:
                    print(f">> OK {'ON' if ctrl.toggle_relay(relay) else 'OFF'}")

            elif choice == '4':
                ctrl.set_all_relays_on(verify=True)
                print(">> OK ALL ON")

            elif choice == '5':
                ctrl.set_all_relays_off(verify=True)
                print(">> OK ALL OFF")

            elif choice == '6':
                print(f">> Firmware version: {ctrl.get_version()}")

            elif choice == '7':
                try:
                    new_address = int(input("New address (e.g. 0x09): "), 0)
                except ValueError:
                    print("Invalid address")
                    continue
                ctrl.change_i2c_address(new_address)
                print(f">> OK address is now 0x{new_address:02X}")

            elif choice == '8':
                report = ctrl.calibrate_timing()
                if report.success:
                    print(f">> Timing optimized: {report.profile.describe()}")
                else:
                    print(f">> Could not optimize timing, keeping {report.profile.describe()}")

            elif choice == 's':
                for relay, on in ctrl.get_relay_states().items():
                    print(f"   Relay {relay}: {'ON' if on else 'OFF'}")
                print(f"   Timing: {ctrl.config.timing.describe()}")
                print(f"   Verification: {ctrl.config.verification.mode.value}")

            else:
                print("Unknown command")

        except RelayError as e:
            print(f">> FAILED: {e}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
