from roomshare.conversations.models import conversations_sql, conversations_rls_sql
from roomshare.favorites.models import favorites_sql, favorites_rls_sql
from roomshare.messages.models import messages_sql, messages_rls_sql


# messages references conversations, so order matters
TABLES = [
    ("conversations", conversations_sql, conversations_rls_sql),
    ("messages", messages_sql, messages_rls_sql),
    ("favorites", favorites_sql, favorites_rls_sql),
]


def schema_sql(with_rls: bool = True) -> str:
    """DDL for the tables this service owns, ready to paste into the Supabase SQL editor."""
    parts = []
    for _, table_sql, rls_sql in TABLES:
        parts.append(table_sql.strip())
        if with_rls:
            parts.append(rls_sql.strip())

    return "\n\n".join(parts) + "\n"
