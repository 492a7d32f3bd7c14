"""HTML coverage report."""

import html
from pathlib import Path

from .accumulator import ClassCoverage


class HtmlCoverageReport:
    """Standalone HTML page listing line coverage per class."""

    def __init__(self, provider: str):
        self.provider = provider

    def to_html(self, classes: list[ClassCoverage], encoding: str = "utf-8") -> str:
        """Render the complete HTML document."""
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="{html.escape(encoding)}">
    <title>Coverage Report ({html.escape(self.provider)})</title>
    <style>
        {self._get_styles()}
    </style>
</head>
<body>
    <div class="container">
        <h1>Coverage Report</h1>
        {self._render_summary(classes)}
        {self._render_classes_table(classes)}
    </div>
</body>
</html>"""

    def write(self, classes: list[ClassCoverage], output_path: Path, encoding: str = "utf-8") -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(self.to_html(classes, encoding), encoding=encoding)
        return output_path

    def _get_styles(self) -> str:
        return """
        body { font-family: sans-serif; color: #333; background: #f5f5f5; margin: 0; padding: 20px; }
        .container { max-width: 1100px; margin: 0 auto; background: white; padding: 30px; }
        .summary { display: flex; gap: 20px; margin-bottom: 30px; }
        .stat-card { background: #f8f9fa; padding: 16px 24px; text-align: center; }
        .stat-value { font-size: 1.8em; font-weight: bold; }
        table { width: 100%; border-collapse: collapse; }
        th, td { padding: 8px 12px; text-align: left; border-bottom: 1px solid #eee; }
        th { background: #f8f9fa; }
        .rate-low { color: #e74c3c; }
        .rate-high { color: #27ae60; }
        .no-results { text-align: center; color: #666; padding: 40px; }
        """

    def _render_summary(self, classes: list[ClassCoverage]) -> str:
        covered = sum(c.lines_covered for c in classes)
        valid = sum(c.lines_valid for c in classes)
        rate = covered / valid * 100 if valid else 0.0
        return f"""
        <div class="summary">
            <div class="stat-card"><div class="stat-value">{len(classes)}</div>Classes</div>
            <div class="stat-card"><div class="stat-value">{covered}/{valid}</div>Lines</div>
            <div class="stat-card"><div class="stat-value">{rate:.0f}%</div>Line Coverage</div>
        </div>
        """

    def _render_classes_table(self, classes: list[ClassCoverage]) -> str:
        if not classes:
            return '<div class="no-results">No coverage data collected.</div>'

        rows = "\n".join(self._render_row(c) for c in classes)
        return f"""
        <table>
            <thead>
                <tr><th>Class</th><th>Source</th><th>Lines</th><th>Rate</th></tr>
            </thead>
            <tbody>
                {rows}
            </tbody>
        </table>
        """

    def _render_row(self, coverage: ClassCoverage) -> str:
        rate_class = "rate-high" if coverage.line_rate >= 0.5 else "rate-low"
        source = html.escape(coverage.source_file.name) if coverage.source_file else "-"
        return (
            f"                <tr><td>{html.escape(coverage.classname)}</td><td>{source}</td>"
            f"<td>{coverage.lines_covered}/{coverage.lines_valid}</td>"
            f'<td class="{rate_class}">{coverage.line_rate * 100:.0f}%</td></tr>'
        )
