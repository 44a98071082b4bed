"""Turn classified usages into a removal plan.

The plan only records what should happen; the tree and the source are left
alone until the applier runs. Each node lands in at most one of the plan's
three tables.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from tree_sitter import Node

from .classifier import Usage, UsageKind
from .scope import Binding, ScopeOracle, node_text, pattern_identifiers

# Neutral value substituted for a tainted value that is consumed as data
PLACEHOLDER = "undefined"

DECLARATION_TYPES = {'variable_declaration', 'lexical_declaration'}

# A removed expression stops climbing at these nodes and is replaced instead
EXPRESSION_BOUNDARIES = {
    'arrow_function': 'body',
    'field_definition': 'value',
    'public_field_definition': 'value',
}

WRITE_TYPES = {'assignment_expression', 'augmented_assignment_expression', 'update_expression'}

PATTERN_TYPES = {
    'object_pattern',
    'array_pattern',
    'pair_pattern',
    'object_assignment_pattern',
    'assignment_pattern',
    'rest_pattern',
}

STATEMENT_TYPES = {
    'variable_declaration',
    'lexical_declaration',
    'function_declaration',
    'generator_function_declaration',
    'class_declaration',
}


def is_statement(node: Node) -> bool:
    return node.type.endswith('_statement') or node.type in STATEMENT_TYPES


def removable_statement(statement: Node) -> Node:
    """The node to delete for statement, including an `export` wrapper."""
    parent = statement.parent
    if parent is not None and parent.type == 'export_statement':
        return parent
    return statement


def list_items(container: Node, item_type: str) -> List[Node]:
    """Siblings of one kind inside a comma-separated container."""
    return [child for child in container.named_children if child.type == item_type]


def owning_statement(container: Node) -> Node:
    """Statement that disappears when a list container becomes empty."""
    if container.type in DECLARATION_TYPES:
        return removable_statement(container)
    # export_clause -> export_statement
    return container.parent if container.parent is not None else container


@dataclass
class RemovalPlan:
    """Deletions and replacements collected during analysis.

    Attributes:
        deletions: Whole statements or declarations to delete
        item_removals: Single declarators / export specifiers inside a list
        replacements: Expressions to substitute, with their replacement text
    """
    deletions: Dict[int, Node] = field(default_factory=dict)
    item_removals: Dict[int, Node] = field(default_factory=dict)
    replacements: Dict[int, Tuple[Node, str]] = field(default_factory=dict)

    def delete(self, node: Node):
        self.item_removals.pop(node.id, None)
        self.replacements.pop(node.id, None)
        self.deletions[node.id] = node

    def remove_item(self, node: Node):
        if node.id in self.deletions:
            return
        self.replacements.pop(node.id, None)
        self.item_removals[node.id] = node

    def replace(self, node: Node, text: str):
        if node.id in self.deletions or node.id in self.item_removals:
            return
        self.replacements[node.id] = (node, text)

    def __len__(self) -> int:
        return len(self.deletions) + len(self.item_removals) + len(self.replacements)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0


class EliminationPlanner:
    """Resolves a Usage into plan entries and reports newly bound names."""

    def __init__(self, oracle: ScopeOracle, plan: RemovalPlan):
        self.oracle = oracle
        self.plan = plan

    def plan_usage(self, usage: Usage) -> List[Binding]:
        """Record the plan entries for usage.

        Returns:
            Bindings that now hold a tainted value (to be added to the tainted set)
        """
        if usage.declarator is not None:
            # Chained definition: the declared names carry the taint forward
            self.remove_declarator(usage.declarator)
            return self.oracle.declared_bindings(usage.declarator.child_by_field_name('name'))

        kind = usage.kind
        if kind in (UsageKind.DIRECT_CALL, UsageKind.METHOD_CALL, UsageKind.STATEMENT):
            self.remove_enclosing_statement(usage.expression)
        elif kind == UsageKind.ASSIGNMENT:
            self.remove_enclosing_statement(_assignment_of(usage.expression))
            bindings = [self.oracle.resolve(identifier) for identifier in pattern_identifiers(usage.target)]
            return [binding for binding in bindings if binding is not None]
        elif kind == UsageKind.EXPORT:
            self.remove_list_item(usage.target)
        elif kind == UsageKind.VALUE_READ:
            self.replace_with_placeholder(usage.expression)
        return []

    def remove_statement(self, statement: Node):
        self.plan.delete(removable_statement(statement))

    def remove_declarator(self, declarator: Node):
        """Remove one declarator, or its whole declaration when it stands alone."""
        declaration = declarator.parent
        if declaration is None or declaration.type not in DECLARATION_TYPES:
            return
        self.remove_list_item(declarator)

    def remove_list_item(self, item: Optional[Node]):
        if item is None or item.parent is None:
            return
        container = item.parent
        if len(list_items(container, item.type)) == 1:
            self.plan.delete(owning_statement(container))
        else:
            self.plan.remove_item(item)

    def remove_enclosing_statement(self, expression: Node):
        """Delete the expression statement that expression belongs to.

        When the expression only feeds part of some other construct (an `if`
        condition, a `return`, a declarator's initializer, an arrow body) the
        expression itself is replaced so the surrounding code survives.
        """
        current = expression
        while current.parent is not None:
            parent = current.parent

            boundary_field = EXPRESSION_BOUNDARIES.get(parent.type)
            if boundary_field is not None and \
                    _same(parent.child_by_field_name(boundary_field), current):
                self.replace_with_placeholder(current)
                return

            if is_statement(parent):
                if parent.type == 'expression_statement' and \
                        (parent.parent is None or parent.parent.type != 'for_statement'):
                    self.remove_statement(parent)
                else:
                    self.replace_with_placeholder(expression)
                return

            current = parent

    def replace_with_placeholder(self, node: Node):
        # if (a.enabled) keeps its parentheses
        while node.type == 'parenthesized_expression' and node.named_children:
            node = node.named_children[0]
        if node.type == 'shorthand_property_identifier':
            # { log } keeps its key: { log: undefined }
            self.plan.replace(node, f"{node_text(node)}: {PLACEHOLDER}")
        else:
            self.plan.replace(node, PLACEHOLDER)


def _same(a: Optional[Node], b: Node) -> bool:
    return a is not None and a.id == b.id


def _assignment_of(node: Node) -> Node:
    """The assignment or update expression that writes through node, if any."""
    current = node
    while current.parent is not None and current.parent.type in PATTERN_TYPES:
        current = current.parent
    parent = current.parent
    if parent is not None and parent.type in WRITE_TYPES:
        return parent
    return node
