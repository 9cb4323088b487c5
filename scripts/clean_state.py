#!/usr/bin/env python3
"""Utility script to clean scrape sessions from the state database."""
import asyncio
import sqlite3
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from enforcement_scraper.config import STATE_DB
from enforcement_scraper.jobs.session import SessionStatus
from enforcement_scraper.store.state import EnforcementStore


def show_stats() -> None:
    """Show statistics about the state database."""
    conn = sqlite3.connect(STATE_DB)
    cursor = conn.cursor()

    cursor.execute("SELECT data_type, COUNT(*) FROM records GROUP BY data_type")
    records = dict(cursor.fetchall())
    cursor.execute("SELECT COUNT(*) FROM offenders")
    offenders = cursor.fetchone()[0]
    cursor.execute("SELECT status, COUNT(*) FROM scrape_sessions GROUP BY status")
    sessions = dict(cursor.fetchall())
    cursor.execute("SELECT COUNT(*) FROM processing_logs")
    logs = cursor.fetchone()[0]

    print(f"State database: {STATE_DB}")
    print(f"Records by type: {records}")
    print(f"Offenders: {offenders}")
    print(f"Sessions by status: {sessions}")
    print(f"Processing log entries: {logs}")

    conn.close()


def delete_sessions(session_ids: list[str] | None = None, status: SessionStatus | None = None) -> int:
    """Delete sessions and their processing logs. Stored records are kept."""
    store = EnforcementStore(STATE_DB)

    async def _delete() -> int:
        await store.initialize()
        return await store.delete_sessions(session_ids=session_ids, status=status)

    return asyncio.run(_delete())


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage:")
        print("  python scripts/clean_state.py stats                  # Show statistics")
        print("  python scripts/clean_state.py session <id> [<id>...] # Delete sessions by id")
        print("  python scripts/clean_state.py status <status>        # Delete sessions with a status")
        sys.exit(1)

    command = sys.argv[1]

    if command == "stats":
        show_stats()
    elif command == "session":
        if len(sys.argv) < 3:
            print("Error: Please provide at least one session id")
            sys.exit(1)
        deleted = delete_sessions(session_ids=sys.argv[2:])
        print(f"Deleted {deleted} sessions")
    elif command == "status":
        if len(sys.argv) < 3:
            print(f"Error: Please provide a status ({', '.join(s.value for s in SessionStatus)})")
            sys.exit(1)
        try:
            status = SessionStatus(sys.argv[2])
        except ValueError:
            print(f"Unknown status: {sys.argv[2]}")
            sys.exit(1)
        if status == SessionStatus.RUNNING:
            confirm = input("Delete sessions marked running? They may still be active (yes/no): ")
            if confirm.lower() != "yes":
                print("Cancelled")
                sys.exit(0)
        deleted = delete_sessions(status=status)
        print(f"Deleted {deleted} {status.value} sessions")
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)
