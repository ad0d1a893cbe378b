import unittest
from unittest.mock import MagicMock, patch, call
from qwiic_relay.boards import BoardModel, RelayState, ChangeAddress
from qwiic_relay.errors import InvalidRelay, TransportError
from qwiic_relay.timing import TimingProfile
from qwiic_relay.toggle import ToggleStateMachine


class TestToggleStateMachine(unittest.TestCase):

    def setUp(self):
        self.transport = MagicMock()
        patcher = patch('time.sleep', return_value=None)
        self.mock_sleep = patcher.start()
        self.addCleanup(patcher.stop)

    def machine(self, board=BoardModel.QUAD, timing=None):
        return ToggleStateMachine(self.transport, board, timing or TimingProfile.standard())

    def test_read_state_decodes_status(self):
        self.transport.read_byte.return_value = 0x0F
        self.assertIs(self.machine().read_state(3), RelayState.ON)
        self.transport.read_byte.assert_called_with(0x07)

        self.transport.read_byte.return_value = 0x00
        self.assertIs(self.machine().read_state(1), RelayState.OFF)

    def test_toggle_when_state_differs(self):
        self.transport.read_byte.return_value = 0x00
        wrote = self.machine().write_desired(2, RelayState.ON)
        self.assertTrue(wrote)
        self.transport.read_byte.assert_called_once_with(0x06)
        self.transport.write_byte.assert_called_once_with(0x02)

    def test_no_write_when_already_correct(self):
        self.transport.read_byte.return_value = 0x0F
        wrote = self.machine().write_desired(2, RelayState.ON)
        self.assertFalse(wrote)
        self.transport.write_byte.assert_not_called()

    def test_single_board_writes_directly(self):
        machine = self.machine(BoardModel.SINGLE)
        self.assertTrue(machine.write_desired(1, RelayState.ON))
        self.assertTrue(machine.write_desired(1, RelayState.OFF))
        self.transport.read_byte.assert_not_called()
        self.assertEqual(self.transport.write_byte.call_args_list, [call(0x01), call(0x00)])

    def test_write_all_is_unconditional(self):
        machine = self.machine()
        machine.write_all(RelayState.ON)
        machine.write_all(RelayState.OFF)
        machine.toggle_all()
        self.transport.read_byte.assert_not_called()
        self.assertEqual(self.transport.write_byte.call_args_list,
                         [call(0x0B), call(0x0A), call(0x0C)])

    def test_register_value_write(self):
        self.machine().send(ChangeAddress(0x09))
        self.transport.write_byte.assert_called_once_with(0xC7, 0x09)

    def test_delays_after_writes(self):
        timing = TimingProfile(write_delay_us=15, state_change_delay_ms=20)
        self.transport.read_byte.return_value = 0x00
        self.machine(timing=timing).write_desired(1, RelayState.ON)
        self.assertEqual(self.mock_sleep.call_args_list, [call(0.000015), call(0.02)])

    def test_transport_error_aborts(self):
        self.transport.read_byte.side_effect = TransportError("no ack")
        with self.assertRaises(TransportError):
            self.machine().write_desired(1, RelayState.ON)
        self.transport.write_byte.assert_not_called()

    def test_invalid_relay_before_bus(self):
        with self.assertRaises(InvalidRelay):
            self.machine().write_desired(5, RelayState.ON)
        self.transport.read_byte.assert_not_called()
        self.transport.write_byte.assert_not_called()

    def test_counts_bus_transactions(self):
        self.transport.read_byte.return_value = 0x00
        machine = self.machine()
        machine.write_desired(1, RelayState.ON)
        self.assertEqual((machine.reads, machine.writes), (1, 1))


if __name__ == '__main__':
    unittest.main()
