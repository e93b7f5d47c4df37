# vetledger_core/constants.py

SCHEMA_VERSION = "1.0"

CHECK_TYPES = frozenset({"criminal", "employment", "education", "reference"})
CHECK_STATUSES = frozenset({"passed", "failed", "pending"})

ITEM_TYPE_ATTESTATION = "attestation"
ITEM_TYPE_GRANT = "grant"
ITEM_TYPES = frozenset({ITEM_TYPE_ATTESTATION, ITEM_TYPE_GRANT})

# Windows are expressed in logical clock ticks (one tick ~ one 10 minute block)
DEFAULT_MAX_VALIDITY_WINDOW = 52560   # ~1 year
DEFAULT_MAX_GRANT_WINDOW = 26280      # ~6 months
MAX_BATCH_SIZE = 20

DEFAULT_DB_PATH = "db/vetledger_state.db"
