"""Chain timing constants for the subnet state refresher."""

BLOCK_TIME_SECONDS = 12            # Subtensor target block time
REFRESH_INTERVAL_BLOCKS = 69       # Blocks between subnet state refreshes
NOT_FOUND_UID = -1                 # UID returned by lookups that miss
