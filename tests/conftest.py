import os
import sys
from pathlib import Path

import pytest

# tests/ から見て 1 つ上 = プロジェクトルート
PROJECT_ROOT = Path(__file__).resolve().parents[1]

# プロジェクトルートを sys.path の先頭に追加（core / backend を解決するため）
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)


@pytest.fixture(autouse=True)
def _isolate_settings_env(monkeypatch):
    """テスト実行環境の TXN_CSV_* 環境変数に結果が左右されないようにする"""
    for key in list(os.environ):
        if key.startswith("TXN_CSV_"):
            monkeypatch.delenv(key, raising=False)
    yield
