#!/usr/bin/env python3
"""
Manager - CLI для каталога переводов.

Команды:
  stats          Статистика каталога (заполненность по языкам)
  init           Создаёт каталог с файлом исходного языка
  set            Записывает одно значение
  add-key        Добавляет ключ (и при --translate сразу переводит)
  add-language   Добавляет файл нового языка
  estimate       Оценка токенов и стоимости перевода недостающих строк
  translate-all  Переводит все недостающие строки через LLM
  translate-key  Переводит один ключ на все языки, где его нет
  usage          Накопленный расход токенов

Использование:
  kraken-i18n stats --project-root .
  kraken-i18n add-key app.subtitle "Welcome" --translate
  kraken-i18n translate-all --languages en,pt-BR,es --yes
  python -m kraken_i18n.manager estimate --model gpt-4o-mini
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich import box
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from .catalog import CatalogStatus, coverage
from .config import load_settings
from .errors import ErrorCode
from .orchestrator import BatchResult, collect_jobs
from .reporting.pricing import estimate_jobs, format_usd
from .session import Command, CommandType, ResponseType, Session

logger = logging.getLogger(__name__)

console = Console()


def get_project_root() -> Path:
    """Определяет корень проекта."""
    # Ищем конфиг или .git
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        if (parent / ".kraken-i18n.yaml").exists() or (parent / ".git").exists():
            return parent
    return current


def build_session(args) -> Session:
    root = Path(args.project_root) if args.project_root else get_project_root()
    settings = load_settings(root)
    if args.i18n_folder:
        settings.i18n_folder = args.i18n_folder
    if args.source:
        settings.source_language = args.source
    if args.model:
        settings.openai_model = args.model
    if args.languages:
        settings.active_languages = [c.strip() for c in args.languages.split(",") if c.strip()]
    if args.delay is not None:
        settings.request_delay = args.delay
    return Session(settings)


def _print_result(result: BatchResult) -> int:
    if result.ok:
        console.print(f"[green]Готово:[/green] переведено {result.done} из {result.total}")
        return 0
    if result.error == ErrorCode.NO_MISSING:
        console.print(result.message)
        return 0
    console.print(f"[red]Ошибка ({result.error.value}):[/red] {result.message}")
    if result.done:
        console.print(f"  Сохранено до остановки: {result.done - (1 if result.failed_job else 0)}")
    return 1


def _run_with_progress(description: str, run) -> BatchResult:
    with Progress(TextColumn("{task.description}"), BarColumn(),
                  TextColumn("{task.completed}/{task.total}"), console=console) as progress:
        task = progress.add_task(description, total=None)

        def on_progress(done: int, total: int):
            progress.update(task, completed=done, total=total)

        return run(on_progress)


def _load_ok_catalog(session: Session):
    catalog = session.load_catalog()
    if catalog.status != CatalogStatus.OK:
        console.print(f"[yellow]{catalog.message}[/yellow]")
        return None
    return catalog


def cmd_stats(args, session: Session) -> int:
    """Команда: статистика каталога."""
    catalog = _load_ok_catalog(session)
    if catalog is None:
        return 1

    active = session.active_languages(catalog)
    table = Table(title=f"Каталог {catalog.directory}", box=box.SIMPLE)
    table.add_column("Язык")
    table.add_column("Название")
    table.add_column("Заполнено", justify="right")
    table.add_column("Покрытие", justify="right")
    table.add_column("")

    for code, (filled, total) in coverage(catalog).items():
        pct = filled / total * 100 if total else 0.0
        marks = []
        if code == catalog.source_language_code:
            marks.append("исходный")
        if code not in active:
            marks.append("неактивен")
        table.add_row(code, catalog.language(code).display_name,
                      f"{filled}/{total}", f"{pct:.1f}%", ", ".join(marks))

    console.print(table)
    jobs = collect_jobs(catalog, active, catalog.source_language_code)
    console.print(f"  Ключей: {len(catalog.keys)}    Недостающих переводов: {len(jobs)}")
    return 0


def cmd_init(args, session: Session) -> int:
    """Команда: инициализация каталога."""
    [response] = session.handle(Command(CommandType.INIT_CATALOG))
    payload = response.payload
    console.print(f"Каталог: {payload.catalog.directory} ({payload.status.value})")
    return 0 if payload.status == CatalogStatus.OK else 1


def cmd_set(args, session: Session) -> int:
    responses = session.handle(Command(CommandType.UPDATE_VALUE, key=args.key,
                                       lang=args.lang, value=args.value))
    return _report_errors(responses)


def cmd_add_key(args, session: Session) -> int:
    """Команда: добавление ключа."""
    if not args.translate:
        responses = session.handle(Command(CommandType.ADD_KEY, key=args.key,
                                           source_lang=session.settings.source_language,
                                           value=args.value))
        return _report_errors(responses)

    catalog = session.load_catalog()
    source = catalog.source_language_code
    batch = session.batch_translator()
    result = _run_with_progress(
        f"Новый ключ {args.key}",
        lambda on_progress: batch.add_key_and_translate(
            catalog, args.key, args.value, session.active_languages(catalog) or [source],
            source, on_progress=on_progress,
        ),
    )
    return _print_result(result)


def cmd_add_language(args, session: Session) -> int:
    session.load_catalog()
    responses = session.handle(Command(CommandType.ADD_LANGUAGE, lang=args.code, force=args.force))
    return _report_errors(responses)


def cmd_estimate(args, session: Session) -> int:
    """Команда: оценка стоимости перевода."""
    catalog = _load_ok_catalog(session)
    if catalog is None:
        return 1

    model = session.settings.openai_model
    jobs = collect_jobs(catalog, session.active_languages(catalog), catalog.source_language_code)
    estimate = estimate_jobs(jobs, model)
    cost = "нет таблицы цен" if estimate.cost is None else format_usd(estimate.cost)

    console.print(f"\n  Модель:             {model}")
    console.print(f"  Недостающих:        {estimate.missing_count}")
    console.print(f"  Токенов (prompt):   {estimate.prompt_tokens:,}")
    console.print(f"  Токенов (ответ):    {estimate.completion_tokens:,}")
    console.print(f"  Токенов всего:      {estimate.total_tokens:,}")
    console.print(f"  Стоимость:          {cost}\n")
    return 0


def cmd_translate_all(args, session: Session) -> int:
    """Команда: перевод всех недостающих строк."""
    catalog = _load_ok_catalog(session)
    if catalog is None:
        return 1

    jobs = collect_jobs(catalog, session.active_languages(catalog), catalog.source_language_code)
    estimate = estimate_jobs(jobs, session.settings.openai_model)
    cost = "?" if estimate.cost is None else format_usd(estimate.cost)
    console.print(f"Недостающих переводов: {len(jobs)}, "
                  f"~{estimate.total_tokens:,} токенов, {cost}")

    if jobs and not args.yes:
        answer = console.input("Продолжить? [y/N] ")
        if answer.strip().lower() not in ("y", "yes", "д", "да"):
            return 1

    batch = session.batch_translator()
    result = _run_with_progress(
        "Перевод",
        lambda on_progress: batch.run_all(jobs, on_progress=on_progress, catalog=catalog),
    )
    return _print_result(result)


def cmd_translate_key(args, session: Session) -> int:
    """Команда: перевод одного ключа."""
    catalog = _load_ok_catalog(session)
    if catalog is None:
        return 1

    batch = session.batch_translator()
    result = _run_with_progress(
        f"Ключ {args.key}",
        lambda on_progress: batch.translate_missing_for_key(
            catalog, args.key, session.active_languages(catalog),
            catalog.source_language_code, on_progress=on_progress,
        ),
    )
    return _print_result(result)


def cmd_usage(args, session: Session) -> int:
    """Команда: накопленный расход токенов."""
    report = session.token_report

    console.print(f"\n  Запросов:       {report.requests}")
    console.print(f"  Токенов всего:  {report.total_tokens:,}")
    console.print(f"  Prompt:         {report.prompt_tokens:,}")
    console.print(f"  Completion:     {report.completion_tokens:,}")
    console.print(f"  Обновлено:      {report.last_updated or '-'}")

    for title, data in (("Модель", report.per_model), ("Язык", report.per_language)):
        if not data:
            continue
        table = Table(box=box.SIMPLE)
        table.add_column(title)
        table.add_column("Токенов", justify="right")
        table.add_column("Доля", justify="right")
        for name, tokens in sorted(data.items(), key=lambda item: -item[1]):
            pct = tokens / report.total_tokens * 100 if report.total_tokens else 0.0
            table.add_row(name, f"{tokens:,}", f"{pct:.1f}%")
        console.print(table)
    return 0


def _report_errors(responses) -> int:
    code = 0
    for response in responses:
        if response.type == ResponseType.ERROR:
            console.print(f"[red]{response.payload.message}[/red]")
            code = 1
    return code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kraken-i18n",
        description="Каталог переводов (JSON per locale) и перевод через LLM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры:
  kraken-i18n stats
  kraken-i18n add-language pt-BR
  kraken-i18n estimate --model gpt-4o-mini
  kraken-i18n translate-all --yes
        """,
    )
    parser.add_argument("--project-root", default="", help="Корень проекта")
    parser.add_argument("--i18n-folder", default="", help="Директория каталога")
    parser.add_argument("--source", default="", help="Исходный язык")
    parser.add_argument("--model", default="", help="Модель LLM")
    parser.add_argument("--languages", default="",
                        help="Активные языки через запятую (по умолчанию все)")
    parser.add_argument("--delay", type=float, default=None,
                        help="Пауза между запросами (сек)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Подробный лог")

    subparsers = parser.add_subparsers(dest="command", help="Команда")

    subparsers.add_parser("stats", help="Статистика каталога")
    subparsers.add_parser("init", help="Создать каталог")

    p_set = subparsers.add_parser("set", help="Записать значение")
    p_set.add_argument("lang", help="Код языка")
    p_set.add_argument("key", help="Ключ (путь через точку)")
    p_set.add_argument("value", help="Значение")

    p_key = subparsers.add_parser("add-key", help="Добавить ключ")
    p_key.add_argument("key", help="Ключ (путь через точку)")
    p_key.add_argument("value", nargs="?", default="", help="Значение исходного языка")
    p_key.add_argument("--translate", action="store_true",
                       help="Сразу перевести на активные языки")

    p_lang = subparsers.add_parser("add-language", help="Добавить язык")
    p_lang.add_argument("code", help="Код языка (en, pt-BR, ...)")
    p_lang.add_argument("--force", action="store_true",
                        help="Добавить даже при совпадении базового кода")

    subparsers.add_parser("estimate", help="Оценка стоимости перевода")

    p_all = subparsers.add_parser("translate-all", help="Перевести все недостающие строки")
    p_all.add_argument("-y", "--yes", action="store_true", help="Без подтверждения")

    p_one = subparsers.add_parser("translate-key", help="Перевести один ключ")
    p_one.add_argument("key", help="Ключ (путь через точку)")

    subparsers.add_parser("usage", help="Расход токенов")

    return parser


COMMANDS = {
    "stats": cmd_stats,
    "init": cmd_init,
    "set": cmd_set,
    "add-key": cmd_add_key,
    "add-language": cmd_add_language,
    "estimate": cmd_estimate,
    "translate-all": cmd_translate_all,
    "translate-key": cmd_translate_key,
    "usage": cmd_usage,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Точка входа CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    session = build_session(args)
    try:
        return handler(args, session)
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
