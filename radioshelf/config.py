"""Configuration: library limits, timing constants, and storage keys."""

# Library
PRESET_SLOTS = (1, 2, 3, 4, 5, 6)
NOTE_MAX_LENGTH = 100
MAX_STATIONS = 1000
MOST_PLAYED_LIMIT = 10

# Playback
DEFAULT_VOLUME = 0.7
VOLUME_STEP = 0.1
LISTENING_TICK_MS = 30_000

# Library view
FILTER_DEBOUNCE_MS = 300

# Persisted keys (key-value store)
STATIONS_KEY = "stations"
LISTENING_TIMES_KEY = "station-listening-times"
SORT_PREFERENCE_KEY = "sort-preference"
PLAYER_SETTINGS_KEY = "player-settings"
PINNED_MIGRATION_KEY = "pinned-to-presets-migration-v1"
RETIRED_IDS_KEY = "retired-station-ids"

# Backup file
EXPORT_VERSION = "1.0"
LEGACY_EXPORT_STATIONS_KEY = "radioStations"

# Radio Browser catalog
CATALOG_SERVERS = [
    "https://de1.api.radio-browser.info",
    "https://fi1.api.radio-browser.info",
    "https://de2.api.radio-browser.info",
]
CATALOG_TIMEOUT_SECONDS = 10.0
CATALOG_SEARCH_LIMIT = 20

# Sharing
SHARE_QUERY_PARAM = "share"
SHARE_BASE_URL = "https://radioshelf.app/"
STARTER_PACK_BASE_URL = "https://radioshelf.app/starter-packs"

DATA_FILE = "radioshelf.json"
