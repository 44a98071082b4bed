"""Apply a removal plan to source bytes.

tree-sitter trees are read-only, so the plan is realized as byte-range edits
over the original source, applied back to front so earlier offsets stay
valid. An edit inside another edit's range belongs to a node that was
detached along with its ancestor and is skipped.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

from tree_sitter import Node

from ..analyzer.planner import RemovalPlan, list_items, owning_statement

logger = logging.getLogger(__name__)

# Parents whose children form a statement list; other parents hold one statement
STATEMENT_LIST_TYPES = {'program', 'statement_block', 'switch_case', 'switch_default'}

EMPTY_STATEMENT = b';'


@dataclass
class Edit:
    start: int
    end: int
    text: bytes
    kind: str  # 'statement', 'item', 'replace'
    count: int = 1


@dataclass
class EditStats:
    """Counts of what an applied plan changed."""
    statements_removed: int = 0
    items_removed: int = 0
    replacements: int = 0

    @property
    def total(self) -> int:
        return self.statements_removed + self.items_removed + self.replacements


class MutationApplier:
    """Realizes a RemovalPlan as edits over one unit's source bytes."""

    def __init__(self, source_bytes: bytes):
        self.source = source_bytes

    def apply(self, plan: RemovalPlan) -> Tuple[bytes, EditStats]:
        """Apply every still-attached plan entry in one pass.

        Args:
            plan: The plan produced by analysis of this source

        Returns:
            (modified source bytes, statistics)
        """
        statements: Dict[int, Node] = dict(plan.deletions)
        edits: List[Edit] = []

        # Declarator counts are re-checked here: a list whose items are all
        # marked loses its whole statement
        for container, removed in self._group_items(plan).values():
            items = list_items(container, removed[0].type)
            removed_ids = {item.id for item in removed}
            if all(item.id in removed_ids for item in items):
                statement = owning_statement(container)
                statements[statement.id] = statement
            else:
                edits.extend(self._item_edits(items, removed_ids))

        for statement in statements.values():
            edits.append(self._statement_edit(statement))

        for node, text in plan.replacements.values():
            edits.append(Edit(node.start_byte, node.end_byte, text.encode('utf-8'), 'replace'))

        kept = self._drop_detached(edits)

        # Apply in DESCENDING order to preserve offsets
        modified = bytearray(self.source)
        stats = EditStats()
        for edit in sorted(kept, key=lambda e: e.start, reverse=True):
            modified[edit.start:edit.end] = edit.text
            if edit.kind == 'statement':
                stats.statements_removed += 1
            elif edit.kind == 'item':
                stats.items_removed += edit.count
            else:
                stats.replacements += 1

        return bytes(modified), stats

    def _group_items(self, plan: RemovalPlan) -> Dict[int, Tuple[Node, List[Node]]]:
        groups: Dict[int, Tuple[Node, List[Node]]] = {}
        for item in plan.item_removals.values():
            container = item.parent
            if container is None:
                continue
            groups.setdefault(container.id, (container, []))[1].append(item)
        return groups

    def _item_edits(self, items: List[Node], removed_ids: set) -> List[Edit]:
        """Edits removing some items of a comma-separated list.

        An item followed by a surviving item is cut up to that item's start,
        taking its comma with it. Removed items after the last survivor are cut
        from the survivor's end, taking the comma before them.
        """
        edits = []
        last_kept = max(i for i, item in enumerate(items) if item.id not in removed_ids)

        for index, item in enumerate(items[:last_kept]):
            if item.id in removed_ids:
                edits.append(Edit(item.start_byte, items[index + 1].start_byte, b'', 'item'))

        trailing = len(items) - 1 - last_kept
        if trailing:
            edits.append(Edit(items[last_kept].end_byte, items[-1].end_byte, b'', 'item', count=trailing))
        return edits

    def _statement_edit(self, statement: Node) -> Edit:
        parent = statement.parent
        if parent is not None and parent.type not in STATEMENT_LIST_TYPES:
            # `if (x) log("a");` needs a statement in that slot
            return Edit(statement.start_byte, statement.end_byte, EMPTY_STATEMENT, 'statement')

        start, end = self._extend_range_for_line(statement.start_byte, statement.end_byte)
        return Edit(start, end, b'', 'statement')

    def _extend_range_for_line(self, start: int, end: int) -> Tuple[int, int]:
        """Grow a statement range over the whitespace around it.

        A statement alone on its line takes its indentation and newline with
        it. One that opens a line shared with other code keeps the indentation
        and takes the spaces after it; any other takes the spaces before it.
        """
        source = self.source
        length = len(source)

        line_start = start
        while line_start > 0 and source[line_start - 1] in (0x20, 0x09):  # space, tab
            line_start -= 1
        at_line_start = line_start == 0 or source[line_start - 1] == 0x0A  # \n

        line_end = end
        while line_end < length and source[line_end] in (0x20, 0x09):
            line_end += 1
        at_line_end = line_end == length or source[line_end] in (0x0D, 0x0A)  # \r, \n

        if at_line_start and at_line_end:
            if line_end < length and source[line_end] == 0x0D:
                line_end += 1
            if line_end < length and source[line_end] == 0x0A:
                line_end += 1
            return line_start, line_end
        if at_line_start:
            # `drop(); // note` leaves the comment at the same indentation
            return start, line_end
        return line_start, end

    def _drop_detached(self, edits: List[Edit]) -> List[Edit]:
        """Skip edits nested in another edit; merge overlapping deletions."""
        edits = sorted(edits, key=lambda e: (e.start, -e.end))
        kept: List[Edit] = []

        for edit in edits:
            if kept and edit.start < kept[-1].end:
                previous = kept[-1]
                if edit.end <= previous.end:
                    logger.debug("skipping %s edit at %d: already detached", edit.kind, edit.start)
                    continue
                if not previous.text and not edit.text:
                    previous.end = edit.end
                    previous.count += edit.count
                    continue
                logger.debug("skipping %s edit at %d: overlaps %s edit", edit.kind, edit.start, previous.kind)
                continue
            kept.append(edit)

        return kept
