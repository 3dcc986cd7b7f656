"""Line-level diff generation and merging."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from agent_toolbox.application.messages import FileOperationMessage

DiffType = Literal["added", "removed", "modified", "unchanged"]

DEFAULT_CONTEXT_LINES = 2

# マージ時に同じクラスタとみなす行番号の差
_ADJACENCY_THRESHOLD = 4
_MERGE_CONTEXT_LINES = 2

_SUMMARY_PARTS: tuple[tuple[DiffType, str], ...] = (
    ("added", "+{} added"),
    ("removed", "-{} removed"),
    ("modified", "~{} modified"),
)


@dataclass(frozen=True)
class DiffLine:
    """差分の1行.

    added は new_text のみ、removed は old_text のみを持つ.
    """

    line_number: int
    type: DiffType
    old_text: str | None = None
    new_text: str | None = None


@dataclass(frozen=True)
class ContextualDiff:
    """前後の文脈行を含む差分."""

    lines: list[DiffLine]
    summary: str


@dataclass(frozen=True)
class MergedDiff:
    """近接する変更をまとめた before/after ブロック."""

    start_line: int
    end_line: int
    before_content: str
    after_content: str


@dataclass(frozen=True)
class MergedFileOperation:
    """ファイルごとのマージ済み差分."""

    file_path: str
    merged_diffs: list[MergedDiff]


def _summarize(changes: Iterable[DiffLine]) -> str:
    counts = Counter(change.type for change in changes)
    parts = [fmt.format(counts[kind]) for kind, fmt in _SUMMARY_PARTS if counts[kind]]
    return ", ".join(parts) if parts else "no changes"


def generate_contextual_diff(
    original_lines: Sequence[str],
    modified_lines: Sequence[str],
    changes: Sequence[DiffLine],
    context_lines: int = DEFAULT_CONTEXT_LINES,
) -> ContextualDiff:
    """
    変更行の前後に文脈行を付けた差分を生成する.

    変更範囲 ``[min - context_lines, max + context_lines]`` を
    ``[1, max(len(original_lines), len(modified_lines))]`` に収め、
    範囲内の各行について明示的な変更か、変更がなければ unchanged 行を出力する.
    unchanged 行は変更後のテキストを優先し、存在しなければ変更前のテキストを使う.

    Args:
        original_lines: 変更前の全行
        modified_lines: 変更後の全行
        changes: 変更行（1始まりの行番号、順不同）
        context_lines: 前後に付ける文脈行数

    Returns:
        文脈付きの差分。changes が空の場合は空の差分
    """
    if not changes:
        return ContextualDiff(lines=[], summary="no changes")

    changes_by_line = {change.line_number: change for change in changes}
    line_numbers = [change.line_number for change in changes]
    start = max(1, min(line_numbers) - context_lines)
    end = min(
        max(len(original_lines), len(modified_lines)),
        max(line_numbers) + context_lines,
    )

    lines: list[DiffLine] = []
    for line_number in range(start, end + 1):
        change = changes_by_line.get(line_number)
        if change is not None:
            lines.append(change)
            continue

        index = line_number - 1
        if index < len(modified_lines):
            text = modified_lines[index]
        elif index < len(original_lines):
            text = original_lines[index]
        else:
            continue
        lines.append(
            DiffLine(line_number=line_number, type="unchanged", old_text=text, new_text=text)
        )

    return ContextualDiff(lines=lines, summary=_summarize(changes))


def generate_append_diff(
    original_lines: Sequence[str],
    appended_content: str,
    start_line_number: int,
) -> ContextualDiff:
    """
    追記操作の差分を生成する.

    Args:
        original_lines: 変更前の全行
        appended_content: 追記する内容
        start_line_number: 追記内容が始まる行番号

    Returns:
        文脈付きの差分
    """
    appended_lines = appended_content.split("\n")
    changes = [
        DiffLine(line_number=start_line_number + i, type="added", new_text=line)
        for i, line in enumerate(appended_lines)
    ]
    modified_lines = [*original_lines, *appended_lines]
    return generate_contextual_diff(original_lines, modified_lines, changes)


def generate_insert_diff(
    original_lines: Sequence[str],
    inserted_content: str,
    insert_line_number: int,
) -> ContextualDiff:
    """
    挿入操作の差分を生成する.

    空行による埋め合わせは呼び出し側の責務.

    Args:
        original_lines: 変更前の全行
        inserted_content: 挿入する内容
        insert_line_number: 挿入位置（1始まり）

    Returns:
        文脈付きの差分
    """
    inserted_lines = inserted_content.split("\n")
    index = insert_line_number - 1
    modified_lines = [*original_lines[:index], *inserted_lines, *original_lines[index:]]
    changes = [
        DiffLine(line_number=insert_line_number + i, type="added", new_text=line)
        for i, line in enumerate(inserted_lines)
    ]
    return generate_contextual_diff(original_lines, modified_lines, changes)


def generate_delete_diff(
    original_lines: Sequence[str],
    delete_line_number: int,
) -> ContextualDiff:
    """
    行削除の差分を生成する.

    Args:
        original_lines: 変更前の全行
        delete_line_number: 削除する行番号（1始まり）

    Returns:
        文脈付きの差分
    """
    index = delete_line_number - 1
    modified_lines = [line for i, line in enumerate(original_lines) if i != index]
    old_text = original_lines[index] if 0 <= index < len(original_lines) else None
    changes = [DiffLine(line_number=delete_line_number, type="removed", old_text=old_text)]
    return generate_contextual_diff(original_lines, modified_lines, changes)


def generate_replace_diff(
    original_lines: Sequence[str],
    line_number: int,
    new_content: str,
) -> ContextualDiff:
    """
    行置換の差分を生成する.

    Args:
        original_lines: 変更前の全行
        line_number: 置換する行番号（1始まり）
        new_content: 置換後の内容

    Returns:
        文脈付きの差分
    """
    index = line_number - 1
    modified_lines = list(original_lines)
    old_text: str | None = None
    if 0 <= index < len(modified_lines):
        old_text = modified_lines[index]
        modified_lines[index] = new_content
    changes = [
        DiffLine(
            line_number=line_number,
            type="modified",
            old_text=old_text,
            new_text=new_content,
        )
    ]
    return generate_contextual_diff(original_lines, modified_lines, changes)


def format_contextual_diff(diff: ContextualDiff, include_line_numbers: bool = True) -> str:
    """
    差分を unified diff 風の文字列にする.

    modified 行は ``-`` 行と ``+`` 行の2行で表示する.

    Args:
        diff: 表示する差分
        include_line_numbers: 行番号を表示するかどうか

    Returns:
        整形済みの差分。差分が空の場合は "No changes"
    """
    if not diff.lines:
        return "No changes"

    first = diff.lines[0].line_number
    count = len(diff.lines)
    output = [f"@@ -{first},{count} +{first},{count} @@"]

    def render(prefix: str, line_number: int, content: str) -> str:
        if include_line_numbers:
            return f"{prefix}{line_number:>3} {content}"
        return f"{prefix}{content}"

    for line in diff.lines:
        if line.type == "added":
            output.append(render("+", line.line_number, line.new_text or ""))
        elif line.type == "removed":
            output.append(render("-", line.line_number, line.old_text or ""))
        elif line.type == "modified":
            output.append(render("-", line.line_number, line.old_text or ""))
            output.append(render("+", line.line_number, line.new_text or ""))
        else:
            output.append(render(" ", line.line_number, line.new_text or line.old_text or ""))

    return "\n".join(output)


def _cluster(diffs: list[DiffLine]) -> list[list[DiffLine]]:
    clusters: list[list[DiffLine]] = []
    for diff in diffs:
        if clusters and diff.line_number <= clusters[-1][-1].line_number + _ADJACENCY_THRESHOLD:
            clusters[-1].append(diff)
        else:
            clusters.append([diff])
    return clusters


def _merge_cluster(
    cluster: list[DiffLine],
    original_lines: Sequence[str],
    file_length: int,
) -> MergedDiff:
    changes_by_line = {diff.line_number: diff for diff in cluster}
    start = max(1, cluster[0].line_number - _MERGE_CONTEXT_LINES)
    end = min(file_length, cluster[-1].line_number + _MERGE_CONTEXT_LINES)

    before: list[str] = []
    after: list[str] = []
    for line_number in range(start, end + 1):
        change = changes_by_line.get(line_number)
        if change is None:
            index = line_number - 1
            text = original_lines[index] if index < len(original_lines) else ""
            before.append(text)
            after.append(text)
            continue

        if change.type in ("removed", "modified"):
            before.append(change.old_text or "")
        if change.type in ("added", "modified"):
            after.append(change.new_text or "")
        if change.type == "unchanged":
            before.append(change.old_text or "")
            after.append(change.new_text or "")

    return MergedDiff(
        start_line=start,
        end_line=end,
        before_content="\n".join(before),
        after_content="\n".join(after),
    )


def merge_file_operations(
    messages: Iterable[FileOperationMessage],
    original_file_contents: Mapping[str, Sequence[str]] | None = None,
) -> list[MergedFileOperation]:
    """
    複数のファイル操作の差分をファイルごとにまとめる.

    行番号順に並べた差分のうち、直前の差分から4行以内のものを同じクラスタにまとめ、
    各クラスタを前後2行の文脈付きの before/after ブロックにする.
    文脈行は original_file_contents から取り、ない場合は空文字列になる.

    Args:
        messages: ファイル操作メッセージ
        original_file_contents: ファイルパスごとの変更前の全行

    Returns:
        最初に現れた順のファイルごとのマージ結果
    """
    diffs_by_file: dict[str, list[DiffLine]] = {}
    for message in messages:
        diffs_by_file.setdefault(message.file_path, []).extend(message.diffs)

    contents = original_file_contents or {}
    merged: list[MergedFileOperation] = []
    for file_path, diffs in diffs_by_file.items():
        original_lines = contents.get(file_path, [])
        ordered = sorted(diffs, key=lambda diff: diff.line_number)
        highest_line = ordered[-1].line_number if ordered else 0
        file_length = max(len(original_lines), highest_line)
        merged.append(
            MergedFileOperation(
                file_path=file_path,
                merged_diffs=[
                    _merge_cluster(cluster, original_lines, file_length)
                    for cluster in _cluster(ordered)
                ],
            )
        )
    return merged


def format_merged_file_operations(merged: Sequence[MergedFileOperation]) -> str:
    """
    マージ済みの差分を人間向けの文字列にする.

    Args:
        merged: merge_file_operations の結果

    Returns:
        整形済みの文字列。空の場合は "No file operations performed."
    """
    if not merged:
        return "No file operations performed."

    output = ["Successfully modified files:"]
    for operation in merged:
        for diff in operation.merged_diffs:
            if diff.start_line == diff.end_line:
                heading = f"before (line {diff.start_line}):"
            else:
                heading = f"before (lines {diff.start_line}-{diff.end_line}):"
            output.extend([heading, "```", diff.before_content, "```"])
            output.extend(["after", "```", diff.after_content, "```"])
    return "\n".join(output)
