"""Classify how a tainted value is used at one site in the tree.

A classification starts at a tainted expression (an identifier that resolves
to a tainted binding, or a `require()` of the target module) and climbs the
usage chain above it: calls of it, property accesses on it, parentheses and
awaits. The node at the top of that chain and its parent decide the shape.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from tree_sitter import Node

from .scope import Reference, ScopeOracle, node_text


class UsageKind(Enum):
    """Syntactic role of a tainted value."""
    DIRECT_CALL = "direct_call"          # log("a"), log("a")(1)
    METHOD_CALL = "method_call"          # a.log("b"), a.extend("x")("y")
    ALIAS = "alias"                      # const b = a
    PROPERTY_ALIAS = "property_alias"    # const b = a.log
    DESTRUCTURE = "destructure"          # const {extend, enable} = debug
    VALUE_READ = "value_read"            # console.log(a.enabled)
    STATEMENT = "statement"              # a.enabled;
    ASSIGNMENT = "assignment"            # x = a, ({ x } = a), a = y, a++, delete a.x
    EXPORT = "export"                    # export { a }


@dataclass
class Usage:
    """One classified use of a tainted value.

    Attributes:
        kind: The usage shape
        reference: Node the classification started from
        expression: Outermost node of the usage chain
        declarator: Declarator the chain initializes, when it does
        target: Assigned identifier or pattern (ASSIGNMENT) or export specifier (EXPORT)
    """
    kind: UsageKind
    reference: Node
    expression: Node
    declarator: Optional[Node] = None
    target: Optional[Node] = None


# Wrappers whose value is the value of their first named child
TRANSPARENT_TYPES = {
    'parenthesized_expression',
    'await_expression',
    'non_null_expression',
    'as_expression',
    'satisfies_expression',
}

ASSIGNMENT_TYPES = {'assignment_expression', 'augmented_assignment_expression'}

# TypeScript type positions; a name used only as a type is left alone
TYPE_CONTEXT_TYPES = {'nested_type_identifier', 'type_query', 'generic_type', 'type_annotation'}
DESTRUCTURING_TYPES = {'object_pattern', 'array_pattern'}

# Left sides of `x = <value>` whose written names receive the value
ASSIGNED_TARGET_TYPES = {'identifier'} | DESTRUCTURING_TYPES


def same_node(a: Optional[Node], b: Optional[Node]) -> bool:
    return a is not None and b is not None and a.id == b.id


class UsageClassifier:
    """Maps a tainted occurrence to a UsageKind."""

    def __init__(self, oracle: ScopeOracle):
        self.oracle = oracle

    def classify(self, reference: Reference) -> Optional[Usage]:
        """Classify a reference occurrence of a tainted binding.

        Declaration sites are never classified; tainting a declared name is
        the job of whoever found its initializer.
        """
        node = reference.node
        if self.oracle.is_declaration(node):
            return None

        parent = reference.parent
        if parent is not None and parent.type in TYPE_CONTEXT_TYPES:
            return None

        if parent is not None and parent.type == 'variable_declarator':
            if same_node(parent.child_by_field_name('name'), node):
                return None

        if node.type == 'shorthand_property_identifier_pattern':
            # ({ log } = other) writes into the tainted binding
            return Usage(UsageKind.ASSIGNMENT, node, node)

        return self.classify_expression(node)

    def classify_expression(self, node: Node) -> Optional[Usage]:
        """Classify any expression that evaluates to a tainted value."""
        top, first_step, has_call = self._climb(node)
        parent = top.parent
        if parent is None:
            return None

        call_kind = UsageKind.DIRECT_CALL if first_step in (None, 'call') else UsageKind.METHOD_CALL

        if parent.type == 'variable_declarator' and same_node(parent.child_by_field_name('value'), top):
            name = parent.child_by_field_name('name')
            if has_call:
                kind = call_kind
            elif name is not None and name.type in DESTRUCTURING_TYPES:
                kind = UsageKind.DESTRUCTURE
            elif first_step == 'member':
                kind = UsageKind.PROPERTY_ALIAS
            else:
                kind = UsageKind.ALIAS
            return Usage(kind, node, top, declarator=parent)

        if parent.type == 'assignment_expression':
            left = parent.child_by_field_name('left')
            if left is not None and left.type in ASSIGNED_TARGET_TYPES and not same_node(left, top):
                # x = a, ({ x, y } = a): the value flows into every written name
                return Usage(UsageKind.ASSIGNMENT, node, top, target=left)

        if has_call:
            return Usage(call_kind, node, top)

        if parent.type == 'unary_expression':
            operator = parent.child_by_field_name('operator')
            if operator is not None and node_text(operator) == 'delete':
                # `delete undefined` is invalid in strict code; drop the whole write
                return Usage(UsageKind.ASSIGNMENT, node, parent)

        if parent.type == 'expression_statement':
            return Usage(UsageKind.STATEMENT, node, top)

        if parent.type in ASSIGNMENT_TYPES:
            return Usage(UsageKind.ASSIGNMENT, node, top)

        if parent.type == 'update_expression':
            return Usage(UsageKind.ASSIGNMENT, node, top)

        if parent.type == 'export_specifier':
            return Usage(UsageKind.EXPORT, node, top, target=parent)

        return Usage(UsageKind.VALUE_READ, node, top)

    def _climb(self, node: Node) -> Tuple[Node, Optional[str], bool]:
        """Walk up while the parent consumes the current value directly.

        Returns:
            (top of chain, first step taken ('call' / 'member' / None), whether any call was crossed)
        """
        current = node
        first_step = None
        has_call = False

        while current.parent is not None:
            parent = current.parent
            parent_type = parent.type

            if parent_type == 'call_expression' and same_node(parent.child_by_field_name('function'), current):
                step = 'call'
            elif parent_type == 'new_expression' and same_node(parent.child_by_field_name('constructor'), current):
                step = 'call'
            elif parent_type in ('member_expression', 'subscript_expression') and \
                    same_node(parent.child_by_field_name('object'), current):
                step = 'member'
            elif parent_type in TRANSPARENT_TYPES and parent.named_children and \
                    same_node(parent.named_children[0], current):
                step = None
            else:
                break

            if step == 'call':
                has_call = True
            if step is not None and first_step is None:
                first_step = step
            current = parent

        return current, first_step, has_call
