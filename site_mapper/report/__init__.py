# File: site_mapper/report/__init__.py
"""site_mapper.report: сохранение карты сайта в JSON и HTML файлы."""

from site_mapper.report.html_report import render_html
from site_mapper.report.json_report import render_json

__all__ = ["render_json", "render_html"]
