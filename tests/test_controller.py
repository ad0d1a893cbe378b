import threading
import unittest
from fake_clock import FakeClock
from qwiic_relay.boards import BoardModel, RelayState
from qwiic_relay.errors import (
    InvalidConfiguration, InvalidRelay, StateVerificationFailed, UnsupportedCommand,
)
from qwiic_relay.relay_controller import QwiicRelay, RelayConfig
from qwiic_relay.simulator import SimulatedBoard
from qwiic_relay.timing import TimingProfile
from qwiic_relay.verification import VerificationMode, VerificationPolicy


def make_controller(board=BoardModel.QUAD, verification=None, **sim_kwargs):
    sim = SimulatedBoard(board, **sim_kwargs)
    ctrl = QwiicRelay(RelayConfig.for_board(board, verification=verification), transport=sim)
    return ctrl, sim


class TestRelayConfig(unittest.TestCase):

    def test_defaults(self):
        cfg = RelayConfig()
        self.assertIs(cfg.board, BoardModel.QUAD_SOLID_STATE)
        self.assertEqual(cfg.relay_count, 4)
        self.assertIs(cfg.verification.mode, VerificationMode.STRICT)
        self.assertIsNone(cfg.default_relay)

    def test_for_board(self):
        single = RelayConfig.for_board(BoardModel.SINGLE)
        self.assertEqual(single.default_relay, 1)
        self.assertEqual(single.timing.name, "mechanical")
        quad = RelayConfig.for_board(BoardModel.QUAD_SOLID_STATE)
        self.assertIsNone(quad.default_relay)
        self.assertEqual(quad.timing.name, "solid_state")

    def test_with_verification(self):
        cfg = RelayConfig.with_verification(BoardModel.DUAL_SOLID_STATE, VerificationPolicy.lenient())
        self.assertEqual(cfg.relay_count, 2)
        self.assertIs(cfg.verification.mode, VerificationMode.LENIENT)

    def test_validate(self):
        with self.assertRaises(InvalidConfiguration):
            RelayConfig(default_relay=5).validate()
        with self.assertRaises(InvalidConfiguration):
            RelayConfig(board=BoardModel.QUAD, timing=TimingProfile(0, 0, 0)).validate()
        with self.assertRaises(InvalidConfiguration):
            RelayConfig(verification=VerificationPolicy().with_timeout(10)).validate()

    def test_controller_rejects_invalid_config(self):
        with self.assertRaises(InvalidConfiguration):
            QwiicRelay(RelayConfig(default_relay=9), transport=SimulatedBoard())


class TestQwiicRelay(unittest.TestCase):

    def setUp(self):
        self.clock = FakeClock().install(self)

    def test_on_then_read_every_board_and_relay(self):
        for board in BoardModel:
            ctrl, sim = make_controller(board)
            for relay in range(1, board.relay_count + 1):
                with self.subTest(board=board, relay=relay):
                    ctrl.set_relay_on(relay)
                    self.assertTrue(ctrl.get_relay_state(relay))
                    ctrl.set_relay_off(relay)
                    self.assertFalse(ctrl.get_relay_state(relay))

    def test_quad_scenario_one_write_one_check(self):
        ctrl, sim = make_controller(BoardModel.QUAD)
        result = ctrl.set_relay_on(2)
        self.assertEqual(sim.writes, [(0x02, None)])
        self.assertEqual(result.checks, 1)

    def test_quad_scenario_stuck_relay(self):
        ctrl, sim = make_controller(BoardModel.QUAD)
        sim.stuck.add(2)
        with self.assertRaises(StateVerificationFailed) as ctx:
            ctrl.set_relay_on(2)
        self.assertEqual(ctx.exception.attempts, 4)
        self.assertEqual(len(sim.writes), 4)

    def test_invalid_relay_no_bus_traffic(self):
        ctrl, sim = make_controller(BoardModel.QUAD)
        for relay in (0, 5, -1):
            with self.subTest(relay=relay):
                with self.assertRaises(InvalidRelay):
                    ctrl.set_relay_on(relay)
        with self.assertRaises(InvalidRelay):
            ctrl.get_relay_state(5)
        self.assertEqual(sim.writes, [])
        self.assertEqual(sim.reads, [])

    def test_missing_relay_number(self):
        ctrl, sim = make_controller(BoardModel.QUAD)
        with self.assertRaises(InvalidRelay):
            ctrl.set_relay_on()
        self.assertEqual(sim.writes, [])

        single, single_sim = make_controller(BoardModel.SINGLE)
        single.set_relay_on()
        self.assertTrue(single.get_relay_state())

    def test_apply_accepts_bool(self):
        ctrl, sim = make_controller()
        ctrl.apply(3, True)
        self.assertIs(sim.state_of(3), RelayState.ON)

    def test_toggle_relay(self):
        ctrl, sim = make_controller()
        self.assertTrue(ctrl.toggle_relay(1))
        self.assertFalse(ctrl.toggle_relay(1))
        self.assertIs(sim.state_of(1), RelayState.OFF)

    def test_all_relays(self):
        ctrl, sim = make_controller()
        ctrl.set_all_relays_on()
        self.assertEqual(sim.writes, [(0x0B, None)])
        self.assertEqual(ctrl.get_relay_states(), {1: True, 2: True, 3: True, 4: True})
        ctrl.set_all_relays_off()
        self.assertEqual(ctrl.get_relay_states(), {1: False, 2: False, 3: False, 4: False})

    def test_all_relays_verified_corrects_stragglers(self):
        ctrl, sim = make_controller()
        sim.drop_writes = 1
        ctrl.set_all_relays_on(verify=True)
        # Bulk write dropped, each relay then toggled on individually
        self.assertEqual(sim.writes, [(0x0B, None), (0x01, None), (0x02, None),
                                      (0x03, None), (0x04, None)])
        self.assertEqual(ctrl.get_relay_states(), {1: True, 2: True, 3: True, 4: True})

    def test_toggle_all(self):
        ctrl, sim = make_controller()
        sim.set_state(2, True)
        ctrl.toggle_all_relays()
        self.assertEqual(ctrl.get_relay_states(), {1: True, 2: False, 3: True, 4: True})

        single, _ = make_controller(BoardModel.SINGLE)
        with self.assertRaises(UnsupportedCommand):
            single.toggle_all_relays()

    def test_version_and_status(self):
        single, sim = make_controller(BoardModel.SINGLE)
        self.assertEqual(single.get_version(), sim.version)
        self.assertEqual(single.get_status(), 0)
        single.set_relay_on()
        self.assertEqual(single.get_status(), 1)

        quad, quad_sim = make_controller(BoardModel.QUAD)
        with self.assertRaises(UnsupportedCommand):
            quad.get_version()
        self.assertEqual(quad_sim.reads, [])

    def test_change_address(self):
        ctrl, sim = make_controller(BoardModel.QUAD_SOLID_STATE)
        ctrl.change_i2c_address(0x09)
        self.assertEqual(sim.writes, [(0xC7, 0x09)])
        self.assertEqual(ctrl.address, 0x09)
        self.assertEqual(sim.address, 0x09)
        self.assertIn(0.1, self.clock.sleeps)

    def test_change_address_rejects_out_of_range(self):
        ctrl, sim = make_controller()
        for address in (0x00, 0x06, 0x79, 0x80):
            with self.subTest(address=address):
                with self.assertRaises(InvalidConfiguration):
                    ctrl.change_i2c_address(address)
        self.assertEqual(sim.writes, [])
        self.assertEqual(ctrl.address, BoardModel.QUAD.default_address)

    def test_invalid_construction_address(self):
        with self.assertRaises(InvalidConfiguration):
            QwiicRelay(RelayConfig(), address=0x7F, transport=SimulatedBoard())

    def test_disabled_verification(self):
        ctrl, sim = make_controller(BoardModel.SINGLE, VerificationPolicy.disabled())
        sim.stuck.add(1)
        result = ctrl.set_relay_on()
        self.assertEqual(sim.writes, [(0x01, None)])
        self.assertEqual(sim.reads, [])
        self.assertEqual(result.checks, 0)

    def test_runtime_timing_changes(self):
        ctrl, sim = make_controller(BoardModel.QUAD_SOLID_STATE)
        ctrl.set_write_delay(15)
        ctrl.set_state_change_delay(20)
        self.assertEqual(ctrl.config.timing.write_delay_us, 15)
        self.assertEqual(ctrl.config.timing.state_change_delay_ms, 20)
        ctrl.set_timing(TimingProfile.conservative())
        self.assertEqual(ctrl.config.timing.name, "conservative")
        ctrl.set_verification(VerificationPolicy.lenient())
        self.assertIs(ctrl.config.verification.mode, VerificationMode.LENIENT)

    def test_invalid_swap_keeps_config(self):
        ctrl, sim = make_controller(BoardModel.QUAD)
        before = ctrl.config
        with self.assertRaises(InvalidConfiguration):
            ctrl.set_state_change_delay(0)
        with self.assertRaises(InvalidConfiguration):
            ctrl.replace_config(RelayConfig(default_relay=0))
        self.assertIs(ctrl.config, before)

    def test_connect_waits_init_delay(self):
        ctrl, sim = make_controller(BoardModel.QUAD)
        with ctrl:
            self.assertTrue(sim.is_open)
            self.assertIn(0.25, self.clock.sleeps)
        self.assertFalse(sim.is_open)
        self.assertFalse(ctrl.is_connected)


class LockCheckingBoard(SimulatedBoard):
    """Fails the test if the bus is used without the controller lock held."""

    lock = None

    def write_byte(self, register, value=None):
        assert self.lock.locked(), "bus write without lock"
        super().write_byte(register, value)

    def read_byte(self, register):
        assert self.lock.locked(), "bus read without lock"
        return super().read_byte(register)


class TestControllerLocking(unittest.TestCase):

    def test_every_bus_call_holds_lock(self):
        clock = FakeClock().install(self)
        sim = LockCheckingBoard(BoardModel.QUAD)
        ctrl = QwiicRelay(RelayConfig.for_board(BoardModel.QUAD), transport=sim)
        sim.lock = ctrl.lock
        ctrl.set_relay_on(1)
        ctrl.toggle_relay(2)
        ctrl.set_all_relays_off(verify=True)
        ctrl.get_relay_states()
        ctrl.change_i2c_address(0x20)
        self.assertGreater(clock.now, 1000.0)

    def test_config_swap_waits_for_operation(self):
        ctrl, sim = make_controller(BoardModel.QUAD)
        ctrl.lock.acquire()
        swapper = threading.Thread(target=ctrl.set_verification, args=(VerificationPolicy.lenient(),))
        swapper.start()
        swapper.join(0.1)
        self.assertTrue(swapper.is_alive())
        self.assertIs(ctrl.config.verification.mode, VerificationMode.STRICT)

        ctrl.lock.release()
        swapper.join(2.0)
        self.assertFalse(swapper.is_alive())
        self.assertIs(ctrl.config.verification.mode, VerificationMode.LENIENT)


if __name__ == '__main__':
    unittest.main()
