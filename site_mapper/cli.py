# === FILE: site_mapper/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска краулера SiteMapper через командную строку.

Команды:
  crawl URL   Обойти сайт и вывести/сохранить карту сайта
  serve       Запустить HTTP-сервер (JSON API и веб-форма)
  config      Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (значения по умолчанию, если не указан)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stdout, если не указан)
  --log-format FORMAT Формат логирования

Команда crawl опции:
  --depth INT           Максимальная глубина (override max_depth)
  --json PATH           Сохранить JSON-дерево в файл
  --html PATH           Сохранить HTML-отчёт в файл
  --pretty              Преформатировать JSON-вывод (отступ 2)
  --crawl-timeout SEC   Таймаут всего обхода (секунд)

Пример:
  site-mapper crawl https://example.com --depth 2 --json sitemap.json --pretty
"""
import asyncio
import json
import sys
from pathlib import Path

import click
from aiohttp import web

from site_mapper import __version__
from site_mapper.config import CrawlerConfig, load_config
from site_mapper.crawler.errors import InvalidURL
from site_mapper.engine import start_crawl
from site_mapper.logger import init_logging
from site_mapper.report.html_report import render_html
from site_mapper.report.json_report import render_json
from site_mapper.server import create_app

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteMapper, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stdout, если не указан)'
)
@click.pass_context
def cli(ctx, config_path, log_level, log_file):
    """Группа команд SiteMapper CLI."""
    init_logging(level=log_level, log_file=log_file)
    cfg = CrawlerConfig()
    if config_path is not None:
        try:
            cfg = load_config(config_path)
        except Exception as e:
            print_error(f'Ошибка загрузки конфигурации: {e}')
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('start_url')
@click.option('--depth', '-d', 'depth', type=click.IntRange(min=0), default=None,
              help='Максимальная глубина обхода (override max_depth)')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-дерево в файл'
)
@click.option(
    '--html', '-h', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.option('--crawl-timeout', 'crawl_timeout', type=click.FloatRange(min=0, min_open=True), default=None,
              help='Таймаут всего обхода (секунд); по истечении возвращается частичное дерево')
@click.pass_context
def crawl_command(ctx, start_url, depth, json_output, html_output, pretty, crawl_timeout):
    """Обойти сайт начиная с START_URL и построить карту сайта."""
    cfg = ctx.obj['config']
    if crawl_timeout is not None:
        cfg = cfg.model_copy(update={'crawl_timeout': crawl_timeout})
    try:
        root = asyncio.run(start_crawl(cfg, start_url, depth))
    except InvalidURL as e:
        print_error(f'Некорректный URL: {e}')
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    if not json_output and not html_output:
        click.echo(json.dumps(root.to_dict(), ensure_ascii=False, indent=2 if pretty else None))
        return

    if json_output:
        try:
            saved_json = render_json(root, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved_json}')
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(root, html_output)
            click.echo(f'HTML report: {saved_html}')
        except OSError as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('serve', context_settings=CONTEXT_SETTINGS)
@click.option('--host', default='0.0.0.0', show_default=True, help='Адрес для прослушивания')
@click.option('--port', default=8080, show_default=True, type=int, help='Порт')
@click.pass_context
def serve(ctx, host, port):
    """Запустить HTTP-сервер с эндпоинтом /crawl и веб-формой."""
    click.echo(f'Server is running on {host}:{port}...')
    run_app(create_app(ctx.obj['config']), host=host, port=port, print=None)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


# expose these names at module level for test monkey-patching
run_app = web.run_app

if __name__ == "__main__":
    cli()
