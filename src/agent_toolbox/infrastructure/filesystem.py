"""Whole-file filesystem primitives used by the file tools."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from pathlib import Path


class FileSystem(Protocol):
    """ファイルツールが利用するファイル操作のインターフェース."""

    def exists(self, path: Path) -> bool:
        """ファイルが存在するかどうかを返す."""
        ...

    def read_file(self, path: Path) -> str:
        """ファイル全体を文字列として読み込む."""
        ...

    def write_file(self, path: Path, content: str) -> None:
        """ファイル全体を書き換える."""
        ...

    def append_file(self, path: Path, content: str) -> None:
        """ファイル末尾に追記する（存在しない場合は作成する）."""
        ...


class LocalFileSystem:
    """
    ローカルディスクに対する FileSystem 実装.

    UTF-8 で読み書きし、改行コードの変換は行わない.
    """

    encoding = "utf-8"

    def exists(self, path: Path) -> bool:
        """
        ファイルが存在するかどうかを返す.

        Args:
            path: 対象ファイルのパス

        Returns:
            通常ファイルとして存在する場合True
        """
        return path.is_file()

    def read_file(self, path: Path) -> str:
        """
        ファイル全体を読み込む.

        Args:
            path: 対象ファイルのパス

        Returns:
            ファイル内容

        Raises:
            OSError: 読み込みに失敗した場合
        """
        with open(path, encoding=self.encoding, newline="") as f:
            return f.read()

    def write_file(self, path: Path, content: str) -> None:
        """
        ファイル全体を書き換える.

        Args:
            path: 対象ファイルのパス
            content: 書き込む内容

        Raises:
            OSError: 書き込みに失敗した場合
        """
        with open(path, "w", encoding=self.encoding, newline="") as f:
            f.write(content)

    def append_file(self, path: Path, content: str) -> None:
        """
        ファイル末尾に追記する.

        Args:
            path: 対象ファイルのパス
            content: 追記する内容

        Raises:
            OSError: 書き込みに失敗した場合
        """
        with open(path, "a", encoding=self.encoding, newline="") as f:
            f.write(content)
