"""
패키지 로깅 설정 (Rich console + plain-text file)

  - Console: RichHandler (markup, rich tracebacks) — 패키지 루트 로거에 1회만 추가
  - File:    FileHandler (Rich markup 제거) — setup_logging(log_file=...) 호출마다 추가

사용법:
    from catalog_search.log import setup_logging, get_logger

    logger = get_logger("sync")
    setup_logging(log_file=Path("logs/reindex.log"))
    logger.info("[bold green]완료![/bold green]")
"""

import logging
from pathlib import Path

from rich.logging import RichHandler
from rich.text import Text

PKG_NAME = "catalog_search"


class _PlainFormatter(logging.Formatter):
    """파일 로그용 Formatter. "[bold]완료[/bold]" → "완료"."""

    def format(self, record: logging.LogRecord) -> str:
        original_msg = record.msg
        try:
            record.msg = Text.from_markup(str(record.msg)).plain
        except (ValueError, KeyError, AttributeError):
            pass
        result = super().format(record)
        record.msg = original_msg
        return result


def setup_logging(log_file: Path | None = None, level: int = logging.INFO) -> logging.Logger:
    """
    패키지 루트 로거에 핸들러를 설정.

    Args:
        log_file: 로그 파일 경로 (None이면 콘솔만)
        level:    로그 레벨

    Returns:
        패키지 루트 로거
    """
    logger = logging.getLogger(PKG_NAME)
    logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        console = RichHandler(
            rich_tracebacks=True,
            show_path=False,
            markup=True,
            log_time_format="[%H:%M:%S]",
        )
        console.setLevel(level)
        logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(_PlainFormatter("%(asctime)s  %(name)s  %(levelname)s  %(message)s"))
        fh.setLevel(level)
        logger.addHandler(fh)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """get_logger("bulk") → logging.getLogger("catalog_search.bulk")"""
    if name:
        return logging.getLogger(f"{PKG_NAME}.{name}")
    return logging.getLogger(PKG_NAME)
