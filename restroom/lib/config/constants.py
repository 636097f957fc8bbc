"""Fixed engine timings and display labels."""

# A soap slot must read empty for this long before the condition is confirmed
SOAP_DEBOUNCE_MS = 5_000

# A device is inactive once this much time has passed since its last ingest
INACTIVE_THRESHOLD_MS = 30_000

# Status reported by the firmware for an empty dispenser slot
EMPTY_STATUS = "Habis"

NO_DATA = "Data tidak ada"

SOAP_SLOTS = ("sabun1", "sabun2", "sabun3")
TISSUE_SLOTS = ("tisu1", "tisu2")
