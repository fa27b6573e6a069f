"""
データ交換層 - 引用コレクションのJSONファイル入出力
"""

from .json_exchange import (
    EXPORT_FILENAME, export_quotes_json, write_export_file,
    parse_import_payload, read_import_file
)

__all__ = [
    'EXPORT_FILENAME', 'export_quotes_json', 'write_export_file',
    'parse_import_payload', 'read_import_file'
]
