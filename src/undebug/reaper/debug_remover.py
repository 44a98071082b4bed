"""Strip a debugging module's imports and uses from JS/TS source files."""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from ..analyzer.parser import LanguageParser
from ..analyzer.taint import analyze
from ..config import DEFAULT_TARGET_MODULE
from .applier import EditStats, MutationApplier

logger = logging.getLogger(__name__)


@dataclass
class TransformResult:
    """Outcome of transforming one compilation unit.

    Attributes:
        code: The transformed source (the input itself when nothing changed)
        changed: Whether code differs from the input
        tainted: Number of bindings found to hold a target-derived value
        passes: Fixed-point passes the analysis needed
        stats: What the applied plan removed and replaced
        skipped: Why the unit was left untouched, if it was
    """
    code: str
    changed: bool = False
    tainted: int = 0
    passes: int = 0
    stats: EditStats = field(default_factory=EditStats)
    skipped: Optional[str] = None


class DebugRemover:
    """
    Removes every import, require and use of a target module (by default
    `debug`) from JavaScript/TypeScript sources using Tree-sitter for
    scope-aware analysis.
    """

    def __init__(self, target_module: Optional[str] = None):
        """
        Args:
            target_module: Module whose uses are removed; None means `debug`

        Raises:
            ValueError: If target_module is empty or only whitespace
        """
        self.target_module = DEFAULT_TARGET_MODULE if target_module is None else target_module
        if not self.target_module.strip():
            raise ValueError("Target module is empty")
        self._parsers: Dict[str, LanguageParser] = {}

    def _get_parser(self, language: str) -> LanguageParser:
        parser = self._parsers.get(language)
        if parser is None:
            parser = LanguageParser(language)
            self._parsers[language] = parser
        return parser

    def transform_source(self, source_code: str, language: str = "javascript") -> TransformResult:
        """Transform one compilation unit.

        A fresh analysis state is built for every call; nothing carries over
        between units.

        Args:
            source_code: Source text of the unit
            language: 'javascript', 'typescript' or 'tsx'

        Returns:
            TransformResult with the rewritten code

        Raises:
            ValueError: If language is not supported
        """
        source_bytes = source_code.encode("utf8")
        tree = self._get_parser(language).parse_source(source_bytes)
        root = tree.root_node

        if root.has_error:
            logger.warning("leaving unit untouched: %s parser reported syntax errors", language)
            return TransformResult(code=source_code, skipped="syntax errors")

        state = analyze(root, self.target_module)
        if state.plan.is_empty:
            return TransformResult(code=source_code, tainted=len(state.tainted), passes=state.passes)

        modified_bytes, stats = MutationApplier(source_bytes).apply(state.plan)
        code = modified_bytes.decode("utf8")
        return TransformResult(
            code=code,
            changed=code != source_code,
            tainted=len(state.tainted),
            passes=state.passes,
            stats=stats,
        )

    def remove_batch(self, file_contents: Dict[Path, str]) -> Dict[Path, TransformResult]:
        """
        Batch processes files, choosing the grammar from each extension.

        Args:
            file_contents: Mapping of file path to raw content string.

        Returns:
            Dict mapping Path to its TransformResult.
        """
        results = {}

        for file_path, content in file_contents.items():
            language = LanguageParser.language_for(file_path)
            if not language:
                results[file_path] = TransformResult(code=content, skipped="unsupported file type")
                continue

            results[file_path] = self.transform_source(content, language)

        return results
