import csv
import logging
from pathlib import Path
from typing import Dict, List, Sequence, Union

from .models import DuplicateGroup, format_size

TABLE_HEADERS = ["Group", "Size", "Hash", "Files"]


class ReportGenerator:
    def __init__(self, groups: Sequence[DuplicateGroup]):
        # Groups with fewer than two survivors (after deletions) are not duplicates anymore
        self.groups = [g for g in groups if len(g) >= 2]

    def summary(self) -> Dict[str, int]:
        return {
            "groups": len(self.groups),
            "files": sum(len(g) for g in self.groups),
            "total_bytes": sum(g.size * len(g) for g in self.groups),
            "savings_bytes": sum(g.wasted_bytes for g in self.groups),
        }

    def render_console(self) -> str:
        """Summary block plus a plain-text table, one row per file."""
        if not self.groups:
            return "\nNo duplicate files found"

        stats = self.summary()
        lines = [
            "",
            "Summary:",
            "==========================================",
            f"Total duplicate groups: {stats['groups']}",
            f"Total duplicate files: {stats['files']}",
            f"Total size: {format_size(stats['total_bytes'])}",
            f"Potential space savings: {format_size(stats['savings_bytes'])}",
            "==========================================",
            "",
        ]

        rows = []
        for idx, group in enumerate(self.groups, start=1):
            for n, rec in enumerate(group):
                if n == 0:
                    rows.append([f"Group {idx}", rec.formatted_size, group.full_hash[:8], str(rec.path)])
                else:
                    rows.append(["", "", "", str(rec.path)])

        widths = [len(h) for h in TABLE_HEADERS]
        for row in rows:
            widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

        def fmt(cells: List[str]) -> str:
            return " | ".join(cell.ljust(w) for cell, w in zip(cells, widths)).rstrip()

        lines.append(fmt(TABLE_HEADERS))
        lines.append("-+-".join("-" * w for w in widths))
        lines.extend(fmt(r) for r in rows)
        lines.append("")
        lines.append("Tip: run without --no-web to manage duplicates from the browser console")
        return "\n".join(lines)

    def display_console(self):
        print(self.render_console())

    def write_csv(self, output_csv: Union[str, Path]):
        headers = ["Group", "Full Hash", "Size", "Path", "Modified"]

        with open(output_csv, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            for idx, group in enumerate(self.groups, start=1):
                for rec in group:
                    writer.writerow([idx, group.full_hash, rec.size, str(rec.path), rec.modified.isoformat()])

        logging.info(f"Report complete. Wrote {len(self.groups)} groups to {output_csv}")
