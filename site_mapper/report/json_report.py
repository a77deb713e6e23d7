# site_mapper/report/json_report.py

"""
Генерация JSON-отчёта для проекта SiteMapper.

Сериализация дерева CrawlNode в файл.
"""
import json
from pathlib import Path

from site_mapper.crawler.models import CrawlNode


def render_json(root: CrawlNode, output_path: Path | str, pretty: bool = False) -> Path:
    """
    Сохраняет дерево root в формате JSON по указанному пути.

    :param root: корень карты сайта
    :param output_path: путь к JSON-файлу
    :param pretty: отступ 2 вместо компактной записи
    :return: Path сохранённого файла
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(root.to_dict(), f, ensure_ascii=False, indent=2 if pretty else None)

    return output
