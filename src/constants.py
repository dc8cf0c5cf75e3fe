"""Project-wide constants."""

DB_SCHEMA = "rulebook"

# Sunset applied when a rule's sunset type is "default" (or unset on legacy records).
DEFAULT_SUNSET_DAYS = 30

# Bumped whenever the backup document shape changes (3 = systems carry systemId).
BACKUP_SCHEMA_VERSION = 3
