"""
quote_sync - ローカル優先の引用コレクションとサーバー同期
"""

__version__ = "1.0.0"
