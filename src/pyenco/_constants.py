"""Internal constants shared across the library."""

# ------------------------------------------------------------------
# Device identification
# ------------------------------------------------------------------

#: Substring matched (case-insensitively) against advertised names.
#: Broad on purpose: "OPPO Enco Air3 Pro", "Enco Buds2", ...
DEFAULT_DEVICE_NAME = "Enco"

BATTERY_SERVICE_UUID = "180F"
BATTERY_LEVEL_CHARACTERISTIC_UUID = "2A19"

#: Vendor service UUIDs contain one of these fragments.
PROPRIETARY_SERVICE_FRAGMENTS: tuple[str, ...] = ("790", "79C", "79A")

#: Writable characteristics matching these fragments accept probe commands.
CONTROL_CHARACTERISTIC_FRAGMENTS: tuple[str, ...] = ("79A", "79C")

#: Single-byte "get status" probes, written one per request.
PROBE_COMMANDS: tuple[int, ...] = (0x00, 0x01, 0xAA, 0x55)

# Bluetooth base UUID: 0000xxxx-0000-1000-8000-00805f9b34fb
BLUETOOTH_BASE_UUID_SUFFIX = "-0000-1000-8000-00805F9B34FB"

# ------------------------------------------------------------------
# Proprietary status frame
# [0xAA][len][7 reserved][type][count][slot, value] * count
# ------------------------------------------------------------------

FRAME_MARKER = 0xAA
FRAME_MIN_LENGTH = 13
FRAME_TYPE_OFFSET = 9
FRAME_COUNT_OFFSET = 10
FRAME_ENTRIES_OFFSET = 11
FRAME_ENTRY_SIZE = 2

RECORD_TYPE_BATTERY = 0x01
RECORD_TYPE_CHARGING = 0x02

PERCENT_MIN = 0
PERCENT_MAX = 100
