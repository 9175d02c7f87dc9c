# Collection Names
COLLECTIONS = {
    'users': 'users',
    'announcements': 'announcements',
    'emergency_alerts': 'emergencyAlerts',
    'officials': 'officials',
    'events': 'events',
    'event_registrations': 'eventRegistrations',
    'voting': 'voting',
    'user_votes': 'userVotes',
    'feedback': 'feedback',
}

# Sections included in a full JSON export
EXPORT_COLLECTIONS = (
    COLLECTIONS['announcements'],
    COLLECTIONS['officials'],
    COLLECTIONS['emergency_alerts'],
    COLLECTIONS['feedback'],
    COLLECTIONS['voting'],
    COLLECTIONS['user_votes'],
)

ARCHIVE_PREFIX = 'archived_'


def archive_collection_name(collection: str) -> str:
    """archived_<collection>, the append-only home of deleted records"""
    return f"{ARCHIVE_PREFIX}{collection}"


def is_archive_collection(collection: str) -> bool:
    return collection.startswith(ARCHIVE_PREFIX)


def is_known_collection(collection: str) -> bool:
    return collection in COLLECTIONS.values()
