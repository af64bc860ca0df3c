# file: scripts/followup_report.py
#!/usr/bin/env python3
"""Print a session's feedback loop, most urgent follow-ups first"""

import argparse
import sys
from pathlib import Path
from rich.console import Console
from rich.table import Table

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rsm_insights.config import get_settings
from rsm_insights.schema import FollowUpState, FollowUpStatus
from rsm_insights.services import FeedbackLoop, SessionStore

_STYLES = {
    FollowUpStatus.overdue: "bold red",
    FollowUpStatus.due: "yellow",
    FollowUpStatus.upcoming: "green",
    FollowUpStatus.complete: "dim",
}

def build_table(rows) -> Table:
    table = Table(title="Feedback Loop")
    table.add_column("Status")
    table.add_column("Contact")
    table.add_column("Query")
    table.add_column("Follow-up")
    table.add_column("Feedback")

    for r in rows:
        fu = r.follow_up
        if fu is None:
            progress = "Not contacted yet."
        elif fu.status == FollowUpState.replied:
            progress = f"Replied on {fu.reply_date:%b %d, %Y}"
        elif fu.next_follow_up_date:
            progress = f"Follow-up {fu.follow_up_count + 1}/3 due: {fu.next_follow_up_date:%b %d, %Y}"
        else:
            progress = f"Contacted on {fu.contacted_date:%b %d, %Y}"
        table.add_row(
            f"[{_STYLES[r.follow_up_status]}]{r.follow_up_status.value}[/]",
            r.contact.name or "Unnamed Contact",
            r.scrape_query,
            progress,
            r.feedback or "",
        )
    return table

def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("session", nargs="?", default="default", help="session id")
    parser.add_argument("--data-dir", default=get_settings().data_dir)
    args = parser.parse_args()

    loop = FeedbackLoop(SessionStore(args.data_dir))
    rows = loop.rows(args.session)
    console = Console()
    if not rows:
        console.print("No contacts in the feedback loop.")
        return
    console.print(build_table(rows))

if __name__ == "__main__":
    main()
