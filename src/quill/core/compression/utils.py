"""Compression utilities: compression units, recency floor, file tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from quill.core.compression.tokens import count_budgeted_tokens

if TYPE_CHECKING:
    from collections.abc import Collection

    from quill.types import Message

# --- Compression units ---


@dataclass
class CompressionUnit:
    """One or two adjacent messages that are kept or dropped together.

    An assistant message with tool calls and the tool message right after it
    form a pair; every other message is a unit of its own.
    """

    start: int
    messages: list[Message]

    @property
    def end(self) -> int:
        return self.start + len(self.messages)

    @property
    def is_tool_pair(self) -> bool:
        return len(self.messages) == 2

    @property
    def is_tool_related(self) -> bool:
        return any(m.role == "tool" or m.has_tool_calls for m in self.messages)

    @property
    def tokens(self) -> int:
        return sum(count_budgeted_tokens(self.messages))


def build_units(messages: list[Message]) -> list[CompressionUnit]:
    """Group messages into compression units, preserving order."""
    units: list[CompressionUnit] = []
    i = 0
    while i < len(messages):
        msg = messages[i]
        if msg.has_tool_calls and i + 1 < len(messages) and messages[i + 1].role == "tool":
            units.append(CompressionUnit(start=i, messages=[msg, messages[i + 1]]))
            i += 2
        else:
            units.append(CompressionUnit(start=i, messages=[msg]))
            i += 1
    return units


# --- Partitioning ---


@dataclass
class UnitPartition:
    """Units split into protected (recency floor), exempt and droppable."""

    units: list[CompressionUnit]
    protected: set[int] = field(default_factory=set)
    exempt: set[int] = field(default_factory=set)

    @property
    def droppable(self) -> list[int]:
        """Positions of droppable units, oldest first."""
        return [i for i in range(len(self.units)) if i not in self.protected and i not in self.exempt]

    def assemble(self, dropped: Collection[int], replacement: Message | None = None) -> list[Message]:
        """Rebuild the message list without the dropped units.

        ``replacement`` takes the place of the first dropped unit.
        """
        dropped = set(dropped)
        result: list[Message] = []
        inserted = replacement is None
        for i, unit in enumerate(self.units):
            if i in dropped:
                if not inserted:
                    result.append(replacement)  # type: ignore[arg-type]
                    inserted = True
                continue
            result.extend(unit.messages)
        return result


def partition_units(
    messages: list[Message],
    preserve_recent_messages: int,
    preserve_tool_history: bool,
) -> UnitPartition:
    """Partition messages into units and classify them.

    A unit is protected when any of its messages falls inside the last
    ``preserve_recent_messages`` messages, so a pair straddling the floor
    boundary is protected whole.
    """
    units = build_units(messages)
    floor_start = max(0, len(messages) - preserve_recent_messages)

    partition = UnitPartition(units=units)
    for i, unit in enumerate(units):
        if unit.end > floor_start:
            partition.protected.add(i)
        elif preserve_tool_history and unit.is_tool_related:
            partition.exempt.add(i)
    return partition


# --- File operations tracking ---


@dataclass
class FileOperations:
    """Tracks file read/write/edit operations in dropped history."""

    read: set[str] = field(default_factory=set)
    written: set[str] = field(default_factory=set)
    edited: set[str] = field(default_factory=set)


def extract_file_ops_from_message(message: Message, file_ops: FileOperations) -> None:
    """Extract file operations from an assistant message's tool calls."""
    for call in message.tool_calls or []:
        path = call.arguments.get("file_path", "") or call.arguments.get("path", "")
        if not path or not isinstance(path, str):
            continue

        if call.name == "read":
            file_ops.read.add(path)
        elif call.name == "write":
            file_ops.written.add(path)
        elif call.name == "edit":
            file_ops.edited.add(path)


def compute_file_lists(file_ops: FileOperations) -> tuple[list[str], list[str]]:
    """Returns (read_only_files, modified_files) both sorted alphabetically."""
    modified = file_ops.written | file_ops.edited
    read_only = file_ops.read - modified
    return sorted(read_only), sorted(modified)


def format_file_operations(read_files: list[str], modified_files: list[str]) -> str:
    """Format file lists as compact summary lines."""
    parts: list[str] = []
    if read_files:
        parts.append("Files read: " + ", ".join(read_files))
    if modified_files:
        parts.append("Files modified: " + ", ".join(modified_files))
    return "\n".join(parts)


def excerpt(text: str, max_len: int) -> str:
    """Collapse whitespace and truncate text for inclusion in summaries."""
    text = " ".join(text.split())
    if len(text) > max_len:
        return text[:max_len].rstrip() + "..."
    return text
