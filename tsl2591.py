# TSL2591 Python Driver for Raspberry Pi
# Dual-channel (visible+IR / IR) ambient light sensor with lux output
# Register protocol per the ams TSL2591 datasheet
# License: MIT

import logging
from enum import IntEnum
from typing import NamedTuple

from smbus2 import SMBus

logger = logging.getLogger(__name__)

# Default I2C bus and device address
BUS = 1
TSL2591_ADDR = 0x29

# Every register access carries the command bit (normal transaction)
TSL2591_COMMAND_BIT = 0xA0

# Register addresses
TSL2591_REGISTER_ENABLE    = 0x00
TSL2591_REGISTER_CONTROL   = 0x01
TSL2591_REGISTER_DEVICE_ID = 0x12
TSL2591_REGISTER_CHAN0_LOW = 0x14
TSL2591_REGISTER_CHAN1_LOW = 0x16

TSL2591_DEVICE_ID = 0x50

# Enable register bits
TSL2591_ENABLE_POWEROFF = 0x00
TSL2591_ENABLE_POWERON  = 0x01
TSL2591_ENABLE_AEN      = 0x02
TSL2591_ENABLE_AIEN     = 0x10
TSL2591_ENABLE_NPIEN    = 0x80

TSL2591_MAX_COUNT = 0xFFFF

# Lux coefficient (device/glass factor)
TSL2591_LUX_DF = 408.0


class IntegrationTime(IntEnum):
    """Control register ATIME codes."""
    IT_100MS = 0x00
    IT_200MS = 0x01
    IT_300MS = 0x02
    IT_400MS = 0x03
    IT_500MS = 0x04
    IT_600MS = 0x05


class Gain(IntEnum):
    """Control register AGAIN codes."""
    LOW    = 0x00
    MEDIUM = 0x10
    HIGH   = 0x20
    MAX    = 0x30


# atime term of the lux formula, in milliseconds
ATIME_MS = {
    IntegrationTime.IT_100MS: 100.0,
    IntegrationTime.IT_200MS: 200.0,
    IntegrationTime.IT_300MS: 300.0,
    IntegrationTime.IT_400MS: 400.0,
    IntegrationTime.IT_500MS: 500.0,
    IntegrationTime.IT_600MS: 600.0,
}

# again term of the lux formula
AGAIN = {
    Gain.LOW:    1.0,
    Gain.MEDIUM: 25.0,
    Gain.HIGH:   428.0,
    Gain.MAX:    9876.0,
}


class TSL2591Error(Exception):
    """Base class for TSL2591 driver errors"""
    pass


class InitError(TSL2591Error):
    """Raised when the driver cannot be brought up"""
    pass


class DeviceNotFoundError(InitError):
    """Raised when the identity register cannot be read or does not match"""
    pass


class BusError(TSL2591Error, OSError):
    """Raised when an I2C transaction fails after initialization"""
    pass


class LuxOverflowError(TSL2591Error, ArithmeticError):
    """Raised when a reading is saturated or cannot feed the lux formula"""
    pass


def _bus_error(err, message):
    # keep the transport errno on the wrapped error
    if err.errno is None:
        return BusError(f"{message}: {err}")
    return BusError(err.errno, f"{message}: {err.strerror or err}")


class RawReading(NamedTuple):
    """Raw counts of both photodiode channels."""
    channel0: int  # visible + infrared
    channel1: int  # infrared only

    @property
    def saturated(self):
        return (self.channel0 >= TSL2591_MAX_COUNT
                or self.channel1 >= TSL2591_MAX_COUNT)

    @property
    def visible(self):
        return max(self.channel0 - self.channel1, 0)


def calculate_lux(channel0, channel1, integration, gain):
    """
    Compute illuminance from raw channel counts.

    Raises LuxOverflowError when either channel is saturated or channel 0
    is zero. No range check is applied to the result; an infrared count
    above the full-spectrum count still yields a value.
    """
    if channel0 >= TSL2591_MAX_COUNT or channel1 >= TSL2591_MAX_COUNT:
        raise LuxOverflowError(
            f"Overflow reading light channels ({channel0}, {channel1}), "
            "reduce gain or integration time")
    if channel0 == 0:
        raise LuxOverflowError("Channel 0 reads zero, lux is undefined")

    atime = ATIME_MS[IntegrationTime(integration)]
    again = AGAIN[Gain(gain)]

    ch0 = float(channel0)
    ch1 = float(channel1)

    cpl = (atime * again) / TSL2591_LUX_DF
    return (ch0 - ch1) * (1.0 - (ch1 / ch0)) / cpl


class TSL2591:
    """Low-level TSL2591 driver over SMBus."""

    def __init__(self, i2c_bus=BUS, address=TSL2591_ADDR):
        if isinstance(i2c_bus, bool):
            raise TypeError(f"Invalid I2C bus: {i2c_bus!r}")

        # A bus number or device path means we open (and own) the handle
        if isinstance(i2c_bus, (int, str)):
            try:
                self.bus = SMBus(i2c_bus)
            except OSError as e:
                raise DeviceNotFoundError(f"Cannot open I2C bus {i2c_bus}") from e
            self._owns_bus = True
        else:
            for method in ("read_byte_data", "write_byte_data", "read_i2c_block_data"):
                if not callable(getattr(i2c_bus, method, None)):
                    raise TypeError(
                        f"I2C bus object {i2c_bus!r} has no {method}() method")
            self.bus = i2c_bus
            self._owns_bus = False
        self.address = address

        self.enabled = False
        self.integration = IntegrationTime.IT_100MS
        self.gain = Gain.MEDIUM

        try:
            device_id = self._read_u8(TSL2591_REGISTER_DEVICE_ID)
        except OSError as e:
            self._release_owned_bus()
            raise DeviceNotFoundError(
                f"TSL2591 not responding at 0x{address:02X}. Check wiring.") from e

        if device_id != TSL2591_DEVICE_ID:
            self._release_owned_bus()
            raise DeviceNotFoundError(
                f"Unexpected device id 0x{device_id:02X} at 0x{address:02X}, "
                f"expected 0x{TSL2591_DEVICE_ID:02X}")

        logger.info("TSL2591 detected at 0x%02X, device id 0x%02X",
                    address, device_id)

        # low power mode by default
        try:
            self.disable()
        except BusError:
            self._release_owned_bus()
            raise

    # ----------------------------------------------------
    # ------------- LOW-LEVEL REGISTER ACCESS ------------
    # ----------------------------------------------------

    def _read_u8(self, reg):
        return self.bus.read_byte_data(self.address, TSL2591_COMMAND_BIT | reg)

    def _read_u16le(self, reg):
        """Read a 16-bit little-endian value starting at the low-byte register."""
        try:
            low, high = self.bus.read_i2c_block_data(
                self.address, TSL2591_COMMAND_BIT | reg, 2)
        except OSError as e:
            raise _bus_error(e, f"Error reading register 0x{reg:02X}") from e
        return (high << 8) | low

    def _write_u8(self, reg, value):
        logger.debug("write reg 0x%02X <- 0x%02X", reg, value)
        try:
            self.bus.write_byte_data(
                self.address, TSL2591_COMMAND_BIT | reg, value & 0xFF)
        except OSError as e:
            raise _bus_error(e, f"Error writing register 0x{reg:02X}") from e

    # ----------------------------------------------------
    # ------------------- POWER STATE --------------------
    # ----------------------------------------------------

    def enable(self):
        """Power on with the ADC, ADC interrupt and no-persist interrupt enabled."""
        self._write_u8(
            TSL2591_REGISTER_ENABLE,
            TSL2591_ENABLE_POWERON | TSL2591_ENABLE_AEN
            | TSL2591_ENABLE_AIEN | TSL2591_ENABLE_NPIEN)
        self.enabled = True

    def disable(self):
        """Power off (low power mode)."""
        self._write_u8(TSL2591_REGISTER_ENABLE, TSL2591_ENABLE_POWEROFF)
        self.enabled = False

    # ----------------------------------------------------
    # ------------- INTEGRATION TIME AND GAIN ------------
    # ----------------------------------------------------

    def configure(self, integration, gain):
        """
        Set integration time and gain in one control register write.

        integration:
            IntegrationTime.IT_100MS .. IT_600MS (codes 0x00..0x05)
        gain:
            Gain.LOW / MEDIUM / HIGH / MAX (codes 0x00, 0x10, 0x20, 0x30)

        Does not power the device; call enable() for live conversions.
        """
        if isinstance(integration, Gain) or isinstance(gain, IntegrationTime):
            raise TypeError(
                f"configure() takes (integration, gain), got ({integration!r}, {gain!r})")
        try:
            integration = IntegrationTime(integration)
        except ValueError:
            raise ValueError(f"Invalid integration time code: {integration!r}") from None
        try:
            gain = Gain(gain)
        except ValueError:
            raise ValueError(f"Invalid gain code: {gain!r}") from None

        self._write_u8(TSL2591_REGISTER_CONTROL, integration | gain)

        self.integration = integration
        self.gain = gain

    @property
    def poll_interval(self):
        """Seconds one conversion takes at the current integration time."""
        return ATIME_MS[self.integration] / 1000.0

    # ----------------------------------------------------
    # -------------------- READINGS ----------------------
    # ----------------------------------------------------

    def read_raw(self):
        """
        Read both channels as a RawReading.

        Counts are returned verbatim, 0xFFFF included. The device must have
        been enabled for at least poll_interval seconds for fresh data;
        this is not checked.
        """
        channel0 = self._read_u16le(TSL2591_REGISTER_CHAN0_LOW)
        channel1 = self._read_u16le(TSL2591_REGISTER_CHAN1_LOW)
        return RawReading(channel0, channel1)

    def read(self):
        """Read both channels and return illuminance in lux."""
        channel0, channel1 = self.read_raw()
        return calculate_lux(channel0, channel1, self.integration, self.gain)

    # ----------------------------------------------------
    # -------------------- BUS HANDLE --------------------
    # ----------------------------------------------------

    def _release_owned_bus(self):
        if self._owns_bus:
            self.bus.close()

    def close(self):
        """Close the bus if this driver opened it. The device is not disabled."""
        self._release_owned_bus()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
