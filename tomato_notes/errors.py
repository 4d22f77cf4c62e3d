"""
例外クラス定義
"""


class TomatoNotesError(Exception):
    """アプリ共通の基底例外"""


class StorageError(TomatoNotesError):
    """保存・読み込みの失敗（メモリ上の状態は巻き戻さない）"""


class SettingsError(TomatoNotesError, ValueError):
    """設定値の検証エラー"""


class LineNotFoundError(TomatoNotesError, KeyError):
    """指定IDの行が存在しない"""

    def __str__(self):
        return f"line not found: {self.args[0]}" if self.args else "line not found"


class NotebookError(TomatoNotesError):
    """ノートブック（複数ページ）関連の基底例外"""


class PageLimitError(NotebookError):
    """ページ数の上限に達している"""


class LastPageError(NotebookError):
    """最後の1ページは閉じられない"""


class PageNotFoundError(NotebookError, KeyError):
    """指定IDのページが存在しない"""


class ReadOnlyNotebookError(NotebookError):
    """猶予期間中（読み取り専用）のノートブックへの変更"""


class ConfirmationRequiredError(NotebookError):
    """確認なしでの無効化"""


class InvalidLineError(TomatoNotesError, ValueError):
    """行の種類などが不正"""
