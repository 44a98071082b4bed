"""Lexical scope analysis for JavaScript/TypeScript syntax trees.

Builds the binding table for one compilation unit and answers two questions
for the rest of the analyzer: which binding does an identifier resolve to,
and where is a binding referenced. Bindings compare by identity, so a name
shadowed in a nested scope is a different binding.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from tree_sitter import Node


# Nodes that open a var-hoisting (function) scope
FUNCTION_SCOPE_TYPES = {
    'program',
    'function_declaration',
    'generator_function_declaration',
    'function_expression',
    'function',
    'generator_function',
    'arrow_function',
    'method_definition',
    'class_static_block',
    # TypeScript signatures carry parameter lists but no body
    'function_signature',
    'method_signature',
    'abstract_method_signature',
    'function_type',
    'call_signature',
    'construct_signature',
}

# Nodes that open a block scope for let/const/class
BLOCK_SCOPE_TYPES = {
    'statement_block',
    'for_statement',
    'for_in_statement',
    'catch_clause',
    'switch_body',
}

DECLARED_FUNCTION_TYPES = {'function_declaration', 'generator_function_declaration'}
FUNCTION_EXPRESSION_TYPES = {'function_expression', 'function', 'generator_function'}
CLASS_DECLARATION_TYPES = {'class_declaration', 'abstract_class_declaration'}

# Identifier-like nodes that can be a use of a variable
REFERENCE_TYPES = {
    'identifier',
    'shorthand_property_identifier',
    'shorthand_property_identifier_pattern',
}

BINDING_IDENTIFIER_TYPES = {'identifier', 'shorthand_property_identifier_pattern'}

# Children of these nodes name imported symbols; they are never uses
IMPORT_NAMING_TYPES = {
    'import_clause',
    'import_specifier',
    'namespace_import',
    'import_require_clause',
}


def node_text(node: Node) -> str:
    """Decode a node's source text."""
    return node.text.decode('utf-8')


def walk(root: Node) -> Iterator[Node]:
    """Yield every node under root in source order (pre-order, no recursion)."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def pattern_identifiers(pattern: Optional[Node]) -> List[Node]:
    """Collect the identifiers a declaration pattern binds.

    Handles plain identifiers, object and array destructuring, defaults,
    rest elements and TypeScript parameter wrappers.

    Args:
        pattern: The `name` of a declarator, a parameter, or a catch parameter

    Returns:
        Binding identifier nodes in source order
    """
    found: List[Node] = []
    if pattern is None:
        return found

    stack = [pattern]
    while stack:
        node = stack.pop()
        node_type = node.type

        if node_type in BINDING_IDENTIFIER_TYPES:
            found.append(node)
        elif node_type == 'pair_pattern':
            value = node.child_by_field_name('value')
            if value is not None:
                stack.append(value)
        elif node_type in ('assignment_pattern', 'object_assignment_pattern'):
            left = node.child_by_field_name('left')
            if left is not None:
                stack.append(left)
        elif node_type in ('required_parameter', 'optional_parameter'):
            inner = node.child_by_field_name('pattern')
            if inner is not None:
                stack.append(inner)
        elif node_type in ('object_pattern', 'array_pattern', 'rest_pattern'):
            stack.extend(reversed(node.named_children))

    return found


def import_identifiers(import_statement: Node) -> List[Node]:
    """Return the local name nodes an import statement introduces.

    Covers default (`import d from`), namespace (`import * as d from`),
    named and aliased (`import {debug as d} from`) forms, and TypeScript's
    `import d = require(...)`.
    """
    found: List[Node] = []
    for clause in import_statement.named_children:
        if clause.type == 'import_require_clause':
            for child in clause.named_children:
                if child.type == 'identifier':
                    found.append(child)
                    break
            continue

        if clause.type != 'import_clause':
            continue

        for child in clause.named_children:
            if child.type == 'identifier':
                found.append(child)
            elif child.type == 'namespace_import':
                for ns_child in child.named_children:
                    if ns_child.type == 'identifier':
                        found.append(ns_child)
            elif child.type == 'named_imports':
                for specifier in child.named_children:
                    if specifier.type != 'import_specifier':
                        continue
                    alias = specifier.child_by_field_name('alias')
                    local = alias if alias is not None else specifier.child_by_field_name('name')
                    if local is not None and local.type == 'identifier':
                        found.append(local)
    return found


class Scope:
    """One lexical scope and the names declared directly in it."""

    def __init__(self, node: Node, parent: Optional['Scope'], is_function: bool):
        self.node = node
        self.parent = parent
        self.is_function = is_function
        self.bindings: Dict[str, 'Binding'] = {}

    def lookup(self, name: str) -> Optional['Binding']:
        """Find the innermost visible binding for name."""
        scope = self
        while scope is not None:
            binding = scope.bindings.get(name)
            if binding is not None:
                return binding
            scope = scope.parent
        return None

    def function_scope(self) -> 'Scope':
        """Nearest enclosing scope that var declarations hoist to."""
        scope = self
        while not scope.is_function and scope.parent is not None:
            scope = scope.parent
        return scope

    def __repr__(self) -> str:
        return f"Scope({self.node.type}@{self.node.start_point[0] + 1})"


@dataclass(eq=False)
class Binding:
    """A declared variable in one scope. Equality is identity."""
    name: str
    kind: str  # 'var', 'let', 'const', 'function', 'class', 'param', 'import', 'catch'
    identifier: Node = field(repr=False)
    scope: Scope = field(repr=False)

    @property
    def line(self) -> int:
        return self.identifier.start_point[0] + 1


@dataclass(frozen=True)
class Reference:
    """A use of a binding, with the syntactic context around it."""
    node: Node

    @property
    def parent(self) -> Optional[Node]:
        return self.node.parent

    @property
    def grandparent(self) -> Optional[Node]:
        parent = self.node.parent
        return parent.parent if parent is not None else None


class ScopeOracle:
    """Resolves identifiers to bindings for a single syntax tree.

    Construction runs two passes over the tree: the first opens scopes and
    declares every binding (so hoisted `var` and function declarations are
    visible before their textual position), the second resolves every
    identifier use against the scope chain.
    """

    def __init__(self, root: Node):
        self.root = root
        self.program_scope: Optional[Scope] = None
        self._scopes: Dict[int, Scope] = {}
        self._declared: Dict[int, Binding] = {}
        self._resolved: Dict[int, Binding] = {}
        self._references: Dict[Binding, List[Reference]] = {}
        self._bindings: List[Binding] = []

        self._declare_all()
        self._resolve_all()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def resolve(self, node: Optional[Node]) -> Optional[Binding]:
        """Binding for a declaring or referencing identifier, None for globals."""
        if node is None:
            return None
        binding = self._declared.get(node.id)
        if binding is not None:
            return binding
        return self._resolved.get(node.id)

    def references_of(self, binding: Binding) -> List[Reference]:
        """Every use of binding, ordered by source position."""
        return list(self._references.get(binding, ()))

    def is_declaration(self, node: Node) -> bool:
        """True when node is the name being declared, not a use."""
        return node.id in self._declared

    def declared_bindings(self, pattern: Optional[Node]) -> List[Binding]:
        """Bindings introduced by a declarator name or other binding pattern."""
        bindings = []
        for identifier in pattern_identifiers(pattern):
            binding = self._declared.get(identifier.id)
            if binding is not None:
                bindings.append(binding)
        return bindings

    @property
    def bindings(self) -> List[Binding]:
        return list(self._bindings)

    # ------------------------------------------------------------------
    # Pass 1: scopes and declarations
    # ------------------------------------------------------------------

    def _open(self, node: Node, parent: Optional[Scope], is_function: bool) -> Scope:
        scope = Scope(node, parent, is_function)
        self._scopes[node.id] = scope
        return scope

    def _declare(self, identifier: Optional[Node], scope: Optional[Scope], kind: str) -> Optional[Binding]:
        if identifier is None or scope is None:
            return None
        if identifier.type not in BINDING_IDENTIFIER_TYPES:
            return None

        name = node_text(identifier)
        binding = scope.bindings.get(name)
        if binding is None:
            # Redeclaration in the same scope (`var a; var a;`) reuses the binding
            binding = Binding(name=name, kind=kind, identifier=identifier, scope=scope)
            scope.bindings[name] = binding
            self._bindings.append(binding)
            self._references[binding] = []
        self._declared[identifier.id] = binding
        return binding

    def _declare_pattern(self, pattern: Optional[Node], scope: Optional[Scope], kind: str):
        for identifier in pattern_identifiers(pattern):
            self._declare(identifier, scope, kind)

    def _declare_all(self):
        stack: List[tuple] = [(self.root, None)]

        while stack:
            node, scope = stack.pop()
            node_type = node.type
            inner = scope

            if node_type == 'program' or scope is None:
                inner = self._open(node, None, is_function=True)
                if self.program_scope is None:
                    self.program_scope = inner

            elif node_type in FUNCTION_SCOPE_TYPES:
                if node_type in DECLARED_FUNCTION_TYPES:
                    self._declare(node.child_by_field_name('name'), scope, 'function')
                inner = self._open(node, scope, is_function=True)
                if node_type in FUNCTION_EXPRESSION_TYPES:
                    # A named function expression sees its own name only inside itself
                    self._declare(node.child_by_field_name('name'), inner, 'function')
                elif node_type == 'arrow_function':
                    self._declare(node.child_by_field_name('parameter'), inner, 'param')

            elif node_type in CLASS_DECLARATION_TYPES:
                self._declare(node.child_by_field_name('name'), scope, 'class')

            elif node_type == 'class':
                name = node.child_by_field_name('name')
                if name is not None:
                    inner = self._open(node, scope, is_function=False)
                    self._declare(name, inner, 'class')

            elif node_type in BLOCK_SCOPE_TYPES:
                inner = self._open(node, scope, is_function=False)
                if node_type == 'catch_clause':
                    self._declare_pattern(node.child_by_field_name('parameter'), inner, 'catch')
                elif node_type == 'for_in_statement':
                    kind = node.child_by_field_name('kind')
                    if kind is not None:
                        kind_text = node_text(kind)
                        target = inner.function_scope() if kind_text == 'var' else inner
                        self._declare_pattern(node.child_by_field_name('left'), target, kind_text)

            elif node_type == 'formal_parameters':
                for parameter in node.named_children:
                    self._declare_pattern(parameter, scope, 'param')

            elif node_type == 'variable_declaration':
                target = scope.function_scope()
                for declarator in node.named_children:
                    if declarator.type == 'variable_declarator':
                        self._declare_pattern(declarator.child_by_field_name('name'), target, 'var')

            elif node_type == 'lexical_declaration':
                kind = node.child_by_field_name('kind')
                kind_text = node_text(kind) if kind is not None else 'let'
                for declarator in node.named_children:
                    if declarator.type == 'variable_declarator':
                        self._declare_pattern(declarator.child_by_field_name('name'), scope, kind_text)

            elif node_type == 'import_statement':
                for identifier in import_identifiers(node):
                    self._declare(identifier, self.program_scope, 'import')

            for child in reversed(node.children):
                stack.append((child, inner))

    # ------------------------------------------------------------------
    # Pass 2: references
    # ------------------------------------------------------------------

    def _scope_of(self, node: Node) -> Optional[Scope]:
        current = node.parent
        while current is not None:
            scope = self._scopes.get(current.id)
            if scope is not None:
                return scope
            current = current.parent
        return self.program_scope

    def _is_use(self, node: Node) -> bool:
        parent = node.parent
        if parent is None:
            return False
        if parent.type in IMPORT_NAMING_TYPES:
            return False

        if parent.type == 'export_specifier':
            alias = parent.child_by_field_name('alias')
            if alias is not None and alias.id == node.id:
                return False
            # export { x } from "mod" names the other module's symbol
            clause = parent.parent
            statement = clause.parent if clause is not None else None
            if statement is not None and statement.child_by_field_name('source') is not None:
                return False

        return True

    def _resolve_all(self):
        for node in walk(self.root):
            if node.type not in REFERENCE_TYPES:
                continue
            if node.id in self._declared or not self._is_use(node):
                continue

            scope = self._scope_of(node)
            if scope is None:
                continue
            binding = scope.lookup(node_text(node))
            if binding is None:
                continue

            self._resolved[node.id] = binding
            self._references[binding].append(Reference(node))
