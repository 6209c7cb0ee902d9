"""Shared pytest fixtures for the TSL2591 driver tests."""

import errno

import pytest

import tsl2591


class FakeSMBus:
    """
    In-memory stand-in for smbus2.SMBus.

    Registers are keyed by the command byte as sent on the wire, so the
    command bit framing is visible to the tests. Every transaction is
    appended to ``transactions``.
    """

    def __init__(self, device_id=tsl2591.TSL2591_DEVICE_ID):
        self.registers = {
            tsl2591.TSL2591_COMMAND_BIT | tsl2591.TSL2591_REGISTER_DEVICE_ID: device_id,
        }
        self.transactions = []
        self.fail_reads = False
        self.fail_writes = False
        self.closed = False

    def set_channels(self, channel0, channel1):
        """Load both channel register pairs, little-endian."""
        c0 = tsl2591.TSL2591_COMMAND_BIT | tsl2591.TSL2591_REGISTER_CHAN0_LOW
        c1 = tsl2591.TSL2591_COMMAND_BIT | tsl2591.TSL2591_REGISTER_CHAN1_LOW
        self.registers[c0] = channel0 & 0xFF
        self.registers[c0 + 1] = channel0 >> 8
        self.registers[c1] = channel1 & 0xFF
        self.registers[c1 + 1] = channel1 >> 8

    def writes(self):
        return [t for t in self.transactions if t[0] == "write"]

    def read_byte_data(self, addr, cmd):
        self.transactions.append(("read", addr, cmd))
        if self.fail_reads:
            raise OSError(errno.EREMOTEIO, "Remote I/O error")
        return self.registers.get(cmd, 0)

    def write_byte_data(self, addr, cmd, value):
        self.transactions.append(("write", addr, cmd, value))
        if self.fail_writes:
            raise OSError(errno.EREMOTEIO, "Remote I/O error")
        self.registers[cmd] = value

    def read_i2c_block_data(self, addr, cmd, length):
        self.transactions.append(("block", addr, cmd, length))
        if self.fail_reads:
            raise OSError(errno.EREMOTEIO, "Remote I/O error")
        return [self.registers.get(cmd + i, 0) for i in range(length)]

    def close(self):
        self.closed = True


@pytest.fixture
def bus():
    """A responsive fake bus holding a TSL2591."""
    return FakeSMBus()


@pytest.fixture
def sensor(bus):
    """An initialized driver on the fake bus, with the init traffic cleared."""
    driver = tsl2591.TSL2591(bus)
    bus.transactions.clear()
    return driver
