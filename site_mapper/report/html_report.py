# File: site_mapper/report/html_report.py
"""site_mapper.report.html_report: Генерация HTML-страниц с помощью Jinja2."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from site_mapper.crawler.models import CrawlNode

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


@lru_cache(maxsize=None)
def get_environment(template_dir: Union[Path, str] = TEMPLATE_DIR) -> Environment:
    """Jinja2-окружение с автоэкранированием; общее для отчётов и веб-интерфейса."""
    return Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )


def render_html(root: CrawlNode, output_path: Union[Path, str]) -> Path:
    """Рендерит вложенное дерево страниц и сохраняет HTML по указанному пути.

    Args:
        root: корень карты сайта.
        output_path: путь к итоговому HTML-файлу.

    Returns:
        Path до сохранённого HTML-файла.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    template = get_environment().get_template("sitemap.html.j2")
    html_content = template.render(root=root, pages=len(root.urls()))
    output_path.write_text(html_content, encoding="utf-8")

    return output_path
