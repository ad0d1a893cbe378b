import sys
import argparse
import logging
# Add project root to path
sys.path.append(".")

from qwiic_relay import config, utils
from qwiic_relay.boards import BoardModel
from qwiic_relay.errors import RelayError
from qwiic_relay.relay_controller import QwiicRelay, RelayConfig
from qwiic_relay.sequence import RelaySequence
from qwiic_relay.simulator import SimulatedBoard
from qwiic_relay.timing import CALIBRATION_CANDIDATES


def main(argv=None):
    parser = argparse.ArgumentParser(description="Compare timing profiles on one relay")
    parser.add_argument("--board", choices=[m.key for m in BoardModel], default="quad_solid_state")
    parser.add_argument("--bus", type=int, default=config.I2C_BUS)
    parser.add_argument("--address", type=lambda s: int(s, 0), default=None)
    parser.add_argument("--relay", type=int, default=1)
    parser.add_argument("--cycles", type=int, default=100)
    parser.add_argument("--log", default=None, help="CSV file for per-operation results")
    parser.add_argument("--simulate", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING, format="%(asctime)s [%(levelname)s] %(message)s")
    board = BoardModel.from_key(args.board)
    log_path = args.log or f"logs/benchmark_{utils.get_timestamp_file()}.csv"

    print("Qwiic Relay Timing Benchmarks")
    print("==============================")

    transport = SimulatedBoard(board, args.address) if args.simulate else None
    try:
        ctrl = QwiicRelay(RelayConfig.for_board(board), bus=args.bus,
                          address=args.address, transport=transport)
        ctrl.connect()
    except RelayError as e:
        print(f"Failed to initialize relay: {e}")
        return 1

    results = {}
    for profile in CALIBRATION_CANDIDATES:
        ctrl.set_timing(profile)
        print(f"\n{profile.describe()}:")
        stats = RelaySequence(ctrl).run([args.relay], args.cycles, log_path=log_path)
        results[profile.name] = stats
        print(f"  Time for {args.cycles} cycles: {stats.total_s:.3f}s")
        print(f"  Average per operation: {stats.average_s * 1000:.2f}ms")
        print(f"  Failures: {stats.failures}/{stats.operations}")

    ctrl.disconnect()

    print("\n==============================")
    print("Summary:")
    baseline = results.get("standard")
    for name, stats in results.items():
        if baseline and baseline.total_s > 0 and stats.total_s > 0:
            print(f"  {name}: {baseline.total_s / stats.total_s:.2f}x vs standard")
    print(f"Per-operation log: {log_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
