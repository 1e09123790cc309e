import html
import logging
from typing import Dict, List, Sequence

from picture_pruner.core.models import Group, Photo
from picture_pruner.utils.file_utils import format_file_size

logger = logging.getLogger(__name__)

PAGE_STYLE = """
    body { font-family: Arial, sans-serif; margin: 24px; color: #222; }
    .summary { background: #f4f4f4; padding: 16px; border-radius: 4px; }
    .group { border: 1px solid #ccc; margin: 16px 0; padding: 12px; }
    .group table { border-collapse: collapse; width: 100%; }
    .group td, .group th { border-bottom: 1px solid #eee; padding: 6px; text-align: left; }
    .group tr.keep { background: #e8f5e9; }
    .group img { max-height: 120px; max-width: 160px; object-fit: contain; }
"""


class GroupReportGenerator:
    """
    HTML overview of exact or similar groups

    The rank-0 member of every group is marked as the photo to keep.
    """

    def generate_report(self,
                        groups: Sequence[Group],
                        photos_by_id: Dict[str, Photo],
                        output_path: str = "group_report.html"):
        sections = [self._summary_html(groups, photos_by_id)]
        for number, group in enumerate(groups, 1):
            sections.append(self._group_html(number, group, photos_by_id))

        page = (
            "<!DOCTYPE html>\n<html>\n<head>\n<meta charset=\"utf-8\">\n"
            f"<title>Picture Pruner report</title>\n<style>{PAGE_STYLE}</style>\n"
            "</head>\n<body>\n<h1>Duplicate and similar photos</h1>\n"
            + "\n".join(sections)
            + "\n</body>\n</html>\n"
        )

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(page)

        logger.info("Report generated: %s (%d groups)", output_path, len(groups))

    @staticmethod
    def calculate_space_savings(groups: Sequence[Group], photos_by_id: Dict[str, Photo]) -> int:
        """Bytes freed by keeping only the rank-0 member of each group"""
        return sum(
            photos_by_id[photo_id].file_size_bytes
            for group in groups
            for photo_id in group.photo_ids[1:]
            if photo_id in photos_by_id
        )

    def _summary_html(self, groups: Sequence[Group], photos_by_id: Dict[str, Photo]) -> str:
        savings = self.calculate_space_savings(groups, photos_by_id)
        return (
            "<div class=\"summary\">"
            f"<p><strong>Total groups:</strong> {len(groups)}</p>"
            f"<p><strong>Photos in groups:</strong> {sum(len(g) for g in groups)}</p>"
            "<p><strong>Reclaimable when keeping the first of each group:</strong> "
            f"{format_file_size(savings)}</p>"
            "</div>"
        )

    def _group_html(self, number: int, group: Group, photos_by_id: Dict[str, Photo]) -> str:
        rows: List[str] = []
        for rank, photo_id in enumerate(group.photo_ids):
            photo = photos_by_id.get(photo_id)
            if photo is None:
                continue
            source = html.escape(photo.source_path, quote=True)
            rows.append(
                f"<tr class=\"{'keep' if rank == 0 else 'extra'}\">"
                f"<td>{rank}</td>"
                f"<td><img src=\"file://{source}\" alt=\"\"></td>"
                f"<td>{html.escape(photo.file_name)}</td>"
                f"<td>{format_file_size(photo.file_size_bytes)}</td>"
                "</tr>"
            )

        policy = f", {html.escape(group.policy)}" if group.policy else ""
        return (
            "<div class=\"group\">"
            f"<h3>Group {number} ({group.kind}{policy}, "
            f"confidence {group.confidence:.2f})</h3>"
            "<table><tr><th>Rank</th><th></th><th>File</th><th>Size</th></tr>"
            + "".join(rows)
            + "</table></div>"
        )
