"""Comment extraction and reviewer selection for code content.

Code is protected from translation by default. A reviewer can opt single
comment lines back in; every other comment line is shielded by the
protector before the text leaves the system.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Set

from .structures import CommentLine, CommentType

FENCE_MARKER = "```"

def _looks_like_url_slashes(line: str, slash_index: int) -> bool:
    if slash_index <= 0:
        return False
    return (
        "http" in line[max(0, slash_index - 5) : slash_index]
        or "https" in line[max(0, slash_index - 6) : slash_index]
    )


def classify_comment(line: str) -> tuple[str, CommentType]:
    """Return ``(comment_text, comment_type)`` for one source line.

    The text is empty when the line holds no comment.
    """

    stripped = line.strip()

    if stripped.startswith("#"):
        return stripped[1:].strip(), CommentType.HASH
    if stripped.startswith("//"):
        return stripped[2:].strip(), CommentType.SLASH
    if stripped.startswith("<!--") and stripped.endswith("-->"):
        return stripped[4:-3].strip(), CommentType.XML

    if "//" in line:
        slash_index = line.index("//")
        if _looks_like_url_slashes(line, slash_index):
            return "", CommentType.OTHER
        return line[slash_index + 2 :].strip(), CommentType.SLASH

    if "#" in line:
        hash_index = line.index("#")
        before_hash = line[:hash_index]
        if "http" in before_hash or "www." in before_hash:
            return "", CommentType.OTHER
        return line[hash_index + 1 :].strip(), CommentType.HASH

    return "", CommentType.OTHER


def extract_comments(code: str) -> List[CommentLine]:
    """Find comment-like lines in ``code``, in source order."""

    comments: List[CommentLine] = []
    for index, line in enumerate(code.split("\n")):
        text, comment_type = classify_comment(line)
        if not text:
            continue
        comments.append(
            CommentLine(
                line_number=index + 1,
                original_line=line,
                comment_text=text,
                comment_type=comment_type,
            )
        )
    return comments


class CommentSelection:
    """In-memory selection state behind the comment picker dialog."""

    def __init__(
        self,
        code: str,
        initial_selected: Optional[Iterable[CommentLine]] = None,
    ) -> None:
        self.code = code
        self.comments = extract_comments(code)
        previous = {comment.key for comment in initial_selected or ()}
        for comment in self.comments:
            comment.is_selected = comment.key in previous

    def __len__(self) -> int:
        return len(self.comments)

    @property
    def selected_count(self) -> int:
        return sum(1 for comment in self.comments if comment.is_selected)

    def toggle(self, index: int) -> None:
        comment = self.comments[index]
        comment.is_selected = not comment.is_selected

    def select_all(self) -> None:
        for comment in self.comments:
            comment.is_selected = True

    def select_none(self) -> None:
        for comment in self.comments:
            comment.is_selected = False

    def select_lines(self, line_numbers: Iterable[int]) -> None:
        """Mark exactly the comments sitting on ``line_numbers`` as selected."""

        wanted = set(line_numbers)
        for comment in self.comments:
            comment.is_selected = comment.line_number in wanted

    def confirm(self) -> List[CommentLine]:
        """Selected comments, in line order."""

        return [comment for comment in self.comments if comment.is_selected]

    def unselected_line_numbers(self) -> Set[int]:
        return {
            comment.line_number for comment in self.comments if not comment.is_selected
        }


def code_line_numbers(text: str) -> Set[int]:
    """1-indexed numbers of fenced code lines in markdown, fences included."""

    numbers: Set[int] = set()
    in_code_block = False
    for line_number, line in enumerate(text.split("\n"), start=1):
        is_fence = line.strip().startswith(FENCE_MARKER)
        if in_code_block or is_fence:
            numbers.add(line_number)
        if is_fence:
            in_code_block = not in_code_block
    return numbers


def lines_to_shield(
    text: str,
    selected: Iterable[CommentLine],
    *,
    whole_text_is_code: bool = False,
) -> Set[int]:
    """Code lines that must stay out of translation.

    Every non-blank code line is shielded except the comment lines the
    reviewer selected. Outside fenced blocks nothing is shielded unless
    ``whole_text_is_code`` is set.
    """

    lines = text.split("\n")
    if whole_text_is_code:
        code_lines = set(range(1, len(lines) + 1))
    else:
        code_lines = code_line_numbers(text)
    opted_in = {
        comment.line_number
        for comment in CommentSelection(text, initial_selected=selected).confirm()
    }
    return {
        number
        for number in code_lines
        if number not in opted_in and lines[number - 1].strip()
    }
