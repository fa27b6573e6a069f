"""
ビュー層 - カテゴリ絞り込みと表示対象の選択
"""

from .filter_view_model import FilterViewModel, filtered, pick_random

__all__ = ['FilterViewModel', 'filtered', 'pick_random']
