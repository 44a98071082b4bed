"""Taint seeding and fixed-point propagation for the target module.

A binding is tainted once it is known to hold a value derived from the target
module. Seeds come from `import ... from "<target>"` and `require("<target>")`;
propagation follows every use of a tainted binding (aliases, destructuring,
property extraction, call results) until a pass discovers nothing new.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional, Set

from tree_sitter import Node

from .classifier import UsageClassifier
from .planner import EliminationPlanner, RemovalPlan
from .scope import Binding, ScopeOracle, import_identifiers, node_text, walk

logger = logging.getLogger(__name__)

QUOTES = ('"', "'")


def string_value(node: Optional[Node]) -> Optional[str]:
    """Value of a plain string literal node, None for anything else."""
    if node is None or node.type != 'string':
        return None
    text = node_text(node)
    if len(text) >= 2 and text[0] in QUOTES and text[-1] == text[0]:
        return text[1:-1]
    return None


def import_source(import_statement: Node) -> Optional[Node]:
    """The module specifier string of an import statement."""
    source = import_statement.child_by_field_name('source')
    if source is not None:
        return source
    # TypeScript: import d = require("debug")
    for child in import_statement.named_children:
        if child.type == 'import_require_clause':
            for inner in child.named_children:
                if inner.type == 'string':
                    return inner
    return None


@dataclass
class AnalysisState:
    """Everything one compilation unit's analysis accumulates.

    Attributes:
        target_module: Module whose uses are eliminated
        oracle: Binding resolution for the unit's tree
        tainted: Bindings known to hold a target-derived value (only grows)
        plan: Deletions and replacements to apply afterwards
        passes: Fixed-point passes the propagation engine ran
    """
    target_module: str
    oracle: ScopeOracle
    tainted: Set[Binding] = field(default_factory=set)
    plan: RemovalPlan = field(default_factory=RemovalPlan)
    passes: int = 0

    def taint(self, binding: Optional[Binding]) -> bool:
        """Add binding to the tainted set. Returns True if the set grew."""
        if binding is None or binding in self.tainted:
            return False
        self.tainted.add(binding)
        logger.debug("tainted %s (%s, line %d)", binding.name, binding.kind, binding.line)
        return True


class TaintSeeder:
    """Finds the imports and requires of the target module."""

    def __init__(self, state: AnalysisState, classifier: UsageClassifier, planner: EliminationPlanner):
        self.state = state
        self.classifier = classifier
        self.planner = planner

    def seed(self) -> int:
        """Scan the tree once and taint every binding created from the target.

        Returns:
            Number of import/require sites of the target module found
        """
        sites = 0
        for node in walk(self.state.oracle.root):
            if node.type == 'import_statement':
                if self._seed_import(node):
                    sites += 1
            elif node.type == 'call_expression' and self._is_target_require(node):
                self._seed_require(node)
                sites += 1

        logger.debug("found %d %r site(s), %d binding(s) seeded",
                     sites, self.state.target_module, len(self.state.tainted))
        return sites

    def _seed_import(self, node: Node) -> bool:
        if string_value(import_source(node)) != self.state.target_module:
            return False

        for identifier in import_identifiers(node):
            self.state.taint(self.state.oracle.resolve(identifier))
        self.planner.remove_statement(node)
        return True

    def _is_target_require(self, call: Node) -> bool:
        callee = call.child_by_field_name('function')
        if callee is None or callee.type != 'identifier' or node_text(callee) != 'require':
            return False
        # A locally declared `require` is not the module loader
        if self.state.oracle.resolve(callee) is not None:
            return False

        arguments = call.child_by_field_name('arguments')
        if arguments is None or arguments.named_child_count == 0:
            return False
        return string_value(arguments.named_children[0]) == self.state.target_module

    def _seed_require(self, call: Node):
        # The require call is itself a tainted value; its use decides the plan
        usage = self.classifier.classify_expression(call)
        if usage is None:
            return
        for binding in self.planner.plan_usage(usage):
            self.state.taint(binding)


class PropagationEngine:
    """Spreads taint along uses of tainted bindings until nothing changes."""

    def __init__(self, state: AnalysisState, classifier: UsageClassifier, planner: EliminationPlanner):
        self.state = state
        self.classifier = classifier
        self.planner = planner
        self._classified: Set[int] = set()

    def run(self) -> int:
        """Repeat classification passes until a pass taints no new binding.

        Each pass visits every not-yet-classified reference of every tainted
        binding. A binding tainted late in one pass gets its references
        inspected in the next, whatever their position in the tree.

        Returns:
            Number of passes run
        """
        while True:
            self.state.passes += 1
            grown = self._pass()
            logger.debug("pass %d: %d new tainted binding(s)", self.state.passes, grown)
            if grown == 0:
                return self.state.passes

    def _pass(self) -> int:
        grown = 0
        snapshot = sorted(self.state.tainted, key=lambda b: b.identifier.start_byte)

        for binding in snapshot:
            for reference in self.state.oracle.references_of(binding):
                if reference.node.id in self._classified:
                    continue
                self._classified.add(reference.node.id)

                usage = self.classifier.classify(reference)
                if usage is None:
                    continue
                for new_binding in self.planner.plan_usage(usage):
                    if self.state.taint(new_binding):
                        grown += 1
        return grown


def analyze(root: Node, target_module: str) -> AnalysisState:
    """Run seeding and propagation over one tree.

    Args:
        root: Root node of the compilation unit
        target_module: Literal module name to eliminate

    Returns:
        The finished analysis state, holding the removal plan
    """
    oracle = ScopeOracle(root)
    state = AnalysisState(target_module=target_module, oracle=oracle)
    classifier = UsageClassifier(oracle)
    planner = EliminationPlanner(oracle, state.plan)

    TaintSeeder(state, classifier, planner).seed()
    PropagationEngine(state, classifier, planner).run()
    return state
