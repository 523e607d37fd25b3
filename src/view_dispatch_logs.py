#!/usr/bin/env python3
"""
Dispatch Log Viewer - Tool for analyzing gateway dispatch and completion logs

Features:
- View recent dispatch decisions (suppressed / replied / moderated)
- Filter by outcome, reason, conversation
- Provider success rates and latencies
- Export filtered results
"""

import argparse
import csv
import json
import sys
from collections import Counter, defaultdict
from pathlib import Path
from typing import Any, Dict, List


class DispatchLogViewer:
    """Utility for viewing and analyzing dispatch logs"""

    def __init__(self, log_dir: str = "logs"):
        self.log_dir = Path(log_dir)
        if not self.log_dir.exists():
            print(f"❌ Log directory not found: {log_dir}")
            sys.exit(1)

    def load_entries(self, filename: str) -> List[Dict[str, Any]]:
        """Load all entries from one JSON-lines file"""
        path = self.log_dir / filename
        entries = []
        if not path.exists():
            return entries
        with open(path, "r", encoding="utf-8") as f:
            for number, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError as e:
                    print(f"⚠️  Skipping line {number} of {path}: {e}")
        entries.sort(key=lambda x: x.get("timestamp", ""))
        return entries

    def filter_entries(self, entries: List[Dict], **filters) -> List[Dict]:
        filtered = entries
        if "outcome" in filters:
            filtered = [e for e in filtered if e.get("outcome") == filters["outcome"]]
        if "reason" in filters:
            filtered = [e for e in filtered if filters["reason"] in (e.get("reason") or "")]
        if "conversation" in filters:
            filtered = [e for e in filtered if e.get("conversation_id") == filters["conversation"]]
        return filtered

    def summarize_dispatch(self, entries: List[Dict]) -> Dict[str, Any]:
        return {
            "total": len(entries),
            "outcomes": Counter(e.get("outcome") for e in entries),
            "reasons": Counter(e.get("reason") for e in entries if e.get("reason")),
            "intents": Counter(e.get("intent") for e in entries if e.get("intent")),
            "conversations": len({e.get("conversation_id") for e in entries}),
        }

    def summarize_providers(self, completions: List[Dict]) -> Dict[str, Dict[str, Any]]:
        """Per-provider attempt counts, outcomes and mean latency"""
        stats: Dict[str, Dict[str, Any]] = defaultdict(lambda: {"attempts": 0, "outcomes": Counter(), "latency": 0.0})
        for entry in completions:
            for attempt in entry.get("attempts", []):
                provider = stats[attempt.get("provider_id", "unknown")]
                provider["attempts"] += 1
                provider["outcomes"][attempt.get("outcome")] += 1
                provider["latency"] += attempt.get("latency", 0.0)
        for provider in stats.values():
            provider["mean_latency"] = provider["latency"] / provider["attempts"] if provider["attempts"] else 0.0
        return dict(stats)

    def print_summary(self, entries: List[Dict], completions: List[Dict]):
        if not entries:
            print("📊 No dispatch entries found")
            return

        summary = self.summarize_dispatch(entries)
        total = summary["total"]
        print("\n📊 **Dispatch Summary**\n")
        print(f"  • Messages: {total} across {summary['conversations']} conversations")
        for outcome, count in summary["outcomes"].most_common():
            print(f"  • {outcome}: {count} ({count / total * 100:.1f}%)")

        if summary["reasons"]:
            print("\n**Top reasons:**")
            for reason, count in summary["reasons"].most_common(8):
                print(f"  • {reason}: {count}")

        if completions:
            exhausted = len([c for c in completions if not c.get("succeeded")])
            print(f"\n**Completions:** {len(completions)} requests, {exhausted} fell back to the apology")
            for provider_id, stats in self.summarize_providers(completions).items():
                ok = stats["outcomes"].get("success", 0)
                print(f"  • {provider_id}: {ok}/{stats['attempts']} ok, mean {stats['mean_latency']:.2f}s "
                      f"({dict(stats['outcomes'])})")

        print(f"\n  Time range: {entries[0].get('timestamp', 'Unknown')} to {entries[-1].get('timestamp', 'Unknown')}")

    def print_entries(self, entries: List[Dict], limit: int = 10):
        print(f"\n📝 **Recent Entries** (showing {min(limit, len(entries))} of {len(entries)})\n")
        emoji = {"replied": "✅", "moderated": "⚠️", "suppressed": "⏭️"}
        for entry in entries[-limit:]:
            outcome = entry.get("outcome", "unknown")
            print(f"{emoji.get(outcome, '❔')} {outcome} ({entry.get('reason') or entry.get('intent') or '-'})")
            print(f"   ⏰ {entry.get('timestamp', 'Unknown')}")
            print(f"   👤 {entry.get('actor_id')} in {entry.get('conversation_id')}, {entry.get('content_length', 0)} chars")
            if entry.get("action"):
                print(f"   🔨 {entry['action']}")
            print()

    def export_csv(self, entries: List[Dict], filename: str):
        fields = ["timestamp", "conversation_id", "actor_id", "content_length",
                  "outcome", "action", "reason", "intent", "stopped_by"]
        with open(filename, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fields, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(entries)
        print(f"📁 Exported {len(entries)} entries to {filename}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="View and analyze gateway dispatch logs")
    parser.add_argument("--limit", type=int, default=10, help="Number of entries to show (default: 10)")
    parser.add_argument("--outcome", choices=["suppressed", "replied", "moderated"], help="Filter by outcome")
    parser.add_argument("--reason", help="Filter by reason (partial match)")
    parser.add_argument("--conversation", help="Filter by conversation id")
    parser.add_argument("--export", help="Export to CSV file")
    parser.add_argument("--log-dir", default="logs", help="Log directory path")

    args = parser.parse_args(argv)

    viewer = DispatchLogViewer(args.log_dir)
    entries = viewer.load_entries("dispatch.jsonl")
    completions = viewer.load_entries("completions.jsonl")
    if not entries:
        print(f"❌ No dispatch entries found in {args.log_dir}")
        return

    filters = {}
    if args.outcome:
        filters["outcome"] = args.outcome
    if args.reason:
        filters["reason"] = args.reason
    if args.conversation:
        filters["conversation"] = args.conversation

    if filters:
        entries = viewer.filter_entries(entries, **filters)
        print(f"🔍 Applied filters: {filters}")

    viewer.print_summary(entries, completions)
    viewer.print_entries(entries, args.limit)

    if args.export:
        viewer.export_csv(entries, args.export)


if __name__ == "__main__":
    main()
