"""
JSONインポート/エクスポート
"""

import json
from pathlib import Path
from typing import Any, Sequence, Union
import logging

from ...core.errors import MalformedPayloadError
from ...core.models import ExportResult, Quote

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "quotes.json"


def export_quotes_json(quotes: Sequence[Quote]) -> str:
    """整形済みJSON文字列（{text, category} の配列）"""
    return json.dumps([quote.to_dict() for quote in quotes], indent=2, ensure_ascii=False)


def write_export_file(quotes: Sequence[Quote], directory: Union[str, Path] = ".") -> ExportResult:
    """quotes.json として書き出し"""
    output_file = Path(directory) / EXPORT_FILENAME
    try:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(export_quotes_json(quotes), encoding="utf-8")
    except OSError as e:
        logger.error(f"Failed to export quotes to {output_file}: {e}")
        return ExportResult(success=False, output_file=output_file, error_message=str(e))

    logger.info(f"Exported {len(quotes)} quotes to {output_file}")
    return ExportResult(success=True, output_file=output_file, count=len(quotes))


def parse_import_payload(content: Union[str, bytes]) -> Any:
    """JSON文字列の解析（形式検証はストア側で行う）"""
    try:
        return json.loads(content)
    except ValueError as e:
        raise MalformedPayloadError(f"Failed to parse import file: {e}") from e


def read_import_file(path: Union[str, Path]) -> Any:
    """インポートファイルの読み込み"""
    file_path = Path(path)
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedPayloadError(f"Failed to read import file {file_path}: {e}") from e
    return parse_import_payload(content)
