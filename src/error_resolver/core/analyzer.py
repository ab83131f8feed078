"""Parser and classifier for type-checker diagnostics.

This module implements the DiagnosticAnalyzer class that turns raw
type-checker output into prioritized, classified errors. It supports:
- The ``path(line,col): error CODE: message`` grammar
- Byte input with undecodable content
- Config-supplied code to root-cause mappings
- Root-cause hints for common error shapes
- Grouped summaries with advisory recommendations
"""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Iterable, Mapping

import structlog

from error_resolver.models.diagnostic import (
    AnalysisSummary,
    AnalyzedError,
    Diagnostic,
    ErrorCategory,
    RootCause,
    RootCauseHint,
    Severity,
)
from error_resolver.utils.logging import LogEventNames
from error_resolver.utils.metrics import get_metrics

log = structlog.get_logger()

PRIORITY: dict[RootCause, int] = {
    RootCause.SYNTAX: 1,
    RootCause.IMPORT: 2,
    RootCause.TYPE: 3,
    RootCause.UNUSED: 4,
    RootCause.OTHER: 5,
}

SEVERITY: dict[RootCause, Severity] = {
    RootCause.SYNTAX: Severity.CRITICAL,
    RootCause.IMPORT: Severity.HIGH,
    RootCause.TYPE: Severity.MEDIUM,
    RootCause.UNUSED: Severity.LOW,
    RootCause.OTHER: Severity.MEDIUM,
}

SYNTAX_CODES = frozenset(
    {"TS1005", "TS1003", "TS1128", "TS1381", "TS1382", "TS17002", "TS1109", "TS1110", "TS1434"}
)
IMPORT_CODES = frozenset({"TS2307", "TS2305", "TS2724", "TS2306", "TS2792"})
TYPE_CODES = frozenset({"TS2339", "TS7006", "TS2722", "TS2345", "TS2322"})
UNUSED_CODES = frozenset({"TS6133", "TS6192", "TS6196", "TS6198", "TS6138"})

SYNTAX_FAMILY = re.compile(r"^TS1\d{3}$")
TYPE_FAMILY = re.compile(r"^TS(?:23|25|70)\d{2}$")
IMPORT_MESSAGE = re.compile(r"Cannot find module|has no exported member")
UNUSED_MESSAGE = re.compile(r"declared but .*never read")
MODULE_NAME = re.compile(r"""(?:module|Module) ['"]([^'"]+)['"]""")

# Pattern name and suggested fix per code, when no message-shaped hint applies
CODE_HINTS: dict[str, tuple[str, str]] = {
    "TS1005": ("token-expected", "Insert or remove the punctuation the parser expected"),
    "TS1003": ("identifier-expected", "Check for a missing or misplaced identifier"),
    "TS1128": ("declaration-expected", "Look for an unbalanced brace above this line"),
    "TS17002": ("jsx-closing-tag-missing", "Add the missing JSX closing tag"),
    "TS2307": ("module-not-found", "Fix the import path or install the missing package"),
    "TS2305": ("no-exported-member", "Import a name the module actually exports"),
    "TS2724": ("no-exported-member", "Import a name the module actually exports"),
    "TS2339": ("property-not-found", "Declare the property on the type or narrow the value"),
    "TS7006": ("implicit-any", "Add a type annotation to the parameter"),
    "TS2722": ("possibly-undefined-invocation", "Guard the call against undefined"),
    "TS2345": ("argument-type-mismatch", "Convert the argument or widen the parameter type"),
    "TS2322": ("type-not-assignable", "Align the value with the declared type"),
    "TS6133": ("unused-declarations", "Remove the unused declaration"),
    "TS6192": ("unused-declarations", "Remove the unused imports"),
    "TS6196": ("unused-declarations", "Remove the unused declaration"),
}

RECOMMENDATIONS: dict[RootCause, str] = {
    RootCause.SYNTAX: "Fix syntax errors first; they hide other diagnostics",
    RootCause.IMPORT: "Resolve import and module errors next",
    RootCause.TYPE: "Address type errors once the tree parses and imports resolve",
    RootCause.UNUSED: "Clean up unused declarations last",
    RootCause.OTHER: "Review remaining diagnostics manually",
}


def classify(
    code: str,
    message: str,
    extra: Mapping[str, RootCause] | None = None,
) -> RootCause:
    """Classify a diagnostic into a root cause.

    Precedence is fixed: config-supplied mappings, then syntax, import,
    type and unused tables, then OTHER.

    Args:
        code: Diagnostic code such as "TS2307"
        message: Diagnostic message text
        extra: Additional code to root-cause mappings, consulted first

    Returns:
        The root cause for the diagnostic
    """
    code = code.upper()
    if extra and code in extra:
        return extra[code]
    if code in SYNTAX_CODES or SYNTAX_FAMILY.match(code):
        return RootCause.SYNTAX
    if code in IMPORT_CODES or IMPORT_MESSAGE.search(message):
        return RootCause.IMPORT
    if code in TYPE_CODES or TYPE_FAMILY.match(code):
        return RootCause.TYPE
    if code in UNUSED_CODES or UNUSED_MESSAGE.search(message):
        return RootCause.UNUSED
    return RootCause.OTHER


def hint_for(diagnostic: Diagnostic) -> RootCauseHint:
    """Derive a free-form hint for a diagnostic. Never used for control flow."""
    is_tsx = diagnostic.file.endswith(".tsx")
    message = diagnostic.message
    dependencies: tuple[str, ...] = ()

    module = MODULE_NAME.search(message)
    if module:
        dependencies = (module.group(1),)

    if "',' expected" in message and is_tsx:
        return RootCauseHint(
            pattern="jsx-destructuring-syntax",
            suggested_fix="Fix array destructuring syntax in React components",
            dependencies=dependencies,
        )
    if "Identifier expected" in message and is_tsx:
        return RootCauseHint(
            pattern="react-component-type-annotation",
            suggested_fix="Fix React component type annotations",
            dependencies=dependencies,
        )
    if "',' expected" in message:
        return RootCauseHint(
            pattern="parameter-type-annotation",
            suggested_fix="Fix function parameter type annotations",
            dependencies=dependencies,
        )

    code = diagnostic.code.upper()
    if code in CODE_HINTS:
        pattern, suggested_fix = CODE_HINTS[code]
        return RootCauseHint(
            pattern=pattern, suggested_fix=suggested_fix, dependencies=dependencies
        )
    return RootCauseHint(pattern=f"{code.lower()}-general", dependencies=dependencies)


class DiagnosticAnalyzer:
    """Parser and classifier for type-checker diagnostics.

    Responsibilities:
    - Parse raw diagnostic text into Diagnostic records
    - Classify each diagnostic into a root cause and severity
    - Order errors deterministically by priority and location
    - Summarize errors for reporting

    Example:
        analyzer = DiagnosticAnalyzer()
        errors = analyzer.analyze(tsc_output)
        summary = analyzer.summarize(errors)
    """

    DIAGNOSTIC_PATTERN = re.compile(
        r"^(?P<path>.+?)\((?P<line>\d+),(?P<col>\d+)\):\s*error\s+"
        r"(?P<code>[A-Za-z0-9]+):\s*(?P<message>.+)$"
    )

    def __init__(self, extra_codes: Mapping[str, RootCause | str] | None = None) -> None:
        """Initialize the analyzer.

        Args:
            extra_codes: Additional code to root-cause mappings, consulted
                before the built-in tables.
        """
        self._extra = {code.upper(): RootCause(rc) for code, rc in (extra_codes or {}).items()}

    def parse(self, raw_text: str | bytes | None) -> list[Diagnostic]:
        """Parse diagnostics from raw text.

        Lines that don't match the grammar, or that report line or
        column 0, are skipped and logged at debug level.

        Args:
            raw_text: Type-checker output

        Returns:
            Parsed diagnostics in input order
        """
        text = self._decode(raw_text)
        if not text:
            return []

        metrics = get_metrics()
        diagnostics: list[Diagnostic] = []
        skipped = 0

        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line:
                continue

            diagnostic = self._parse_line(line)
            if diagnostic is None:
                skipped += 1
                log.debug(
                    LogEventNames.DIAGNOSTIC_LINE_SKIPPED,
                    line=line[:200],
                    skipped_count=skipped,
                )
                continue
            diagnostics.append(diagnostic)

        metrics.diagnostics_parsed.inc(len(diagnostics))
        if skipped:
            metrics.diagnostics_skipped.inc(skipped)
        return diagnostics

    def classify(self, code: str, message: str) -> RootCause:
        """Classify a diagnostic using this analyzer's extra mappings."""
        return classify(code, message, self._extra)

    def analyze(self, raw_text: str | bytes | None) -> list[AnalyzedError]:
        """Parse, classify and prioritize diagnostics.

        Never raises: unusable input yields an empty list.

        Args:
            raw_text: Type-checker output

        Returns:
            Errors sorted by (priority, file, line, column)
        """
        errors = [self.enrich(diagnostic) for diagnostic in self.parse(raw_text)]
        errors.sort(key=lambda e: (e.priority, e.file, e.line, e.column))

        log.info(
            LogEventNames.DIAGNOSTICS_ANALYZED,
            total=len(errors),
            files=len({e.file for e in errors}),
        )
        return errors

    def enrich(self, diagnostic: Diagnostic) -> AnalyzedError:
        """Attach category, priority and hint to a parsed diagnostic."""
        root_cause = self.classify(diagnostic.code, diagnostic.message)
        return AnalyzedError(
            diagnostic=diagnostic,
            category=ErrorCategory(root_cause=root_cause, severity=SEVERITY[root_cause]),
            priority=PRIORITY[root_cause],
            hint=hint_for(diagnostic),
        )

    def summarize(self, errors: Iterable[AnalyzedError]) -> AnalysisSummary:
        """Group errors for reporting.

        Args:
            errors: Analyzed errors

        Returns:
            AnalysisSummary with groupings, critical files and recommendations
        """
        error_list = list(errors)
        by_file: dict[str, list[AnalyzedError]] = defaultdict(list)
        by_root_cause: dict[RootCause, list[AnalyzedError]] = defaultdict(list)
        by_severity: dict[Severity, list[AnalyzedError]] = defaultdict(list)
        by_code: dict[str, int] = defaultdict(int)

        for error in error_list:
            by_file[error.file].append(error)
            by_root_cause[error.root_cause].append(error)
            by_severity[error.severity].append(error)
            by_code[error.code] += 1

        critical_counts = {
            path: sum(1 for e in file_errors if e.severity == Severity.CRITICAL)
            for path, file_errors in by_file.items()
        }
        critical_files = sorted(
            (path for path, count in critical_counts.items() if count > 0),
            key=lambda path: (-critical_counts[path], path),
        )

        return AnalysisSummary(
            total_errors=len(error_list),
            by_file=dict(by_file),
            by_root_cause={rc: by_root_cause[rc] for rc in PRIORITY if rc in by_root_cause},
            by_severity=dict(by_severity),
            by_code=dict(sorted(by_code.items(), key=lambda item: (-item[1], item[0]))),
            critical_files=critical_files,
            recommendations=self._recommendations(by_root_cause),
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _decode(self, raw_text: object) -> str:
        if raw_text is None:
            return ""
        if isinstance(raw_text, bytes | bytearray):
            return bytes(raw_text).decode("utf-8", errors="replace")
        if isinstance(raw_text, str):
            return raw_text
        log.warning("diagnostic_input_unsupported", input_type=type(raw_text).__name__)
        return ""

    def _parse_line(self, line: str) -> Diagnostic | None:
        match = self.DIAGNOSTIC_PATTERN.match(line)
        if not match:
            return None

        line_no = int(match.group("line"))
        column = int(match.group("col"))
        path = match.group("path").strip()
        if line_no < 1 or column < 1 or not path:
            return None

        return Diagnostic(
            file=path,
            line=line_no,
            column=column,
            code=match.group("code"),
            message=match.group("message").strip(),
            raw=line,
        )

    def _recommendations(self, by_root_cause: Mapping[RootCause, list[AnalyzedError]]) -> list[str]:
        if not by_root_cause:
            return ["No diagnostics found; nothing to remediate"]

        recommendations = []
        for root_cause in PRIORITY:
            errors = by_root_cause.get(root_cause)
            if not errors:
                continue
            codes = sorted({e.code for e in errors})
            shown = ", ".join(codes[:3])
            recommendations.append(f"{RECOMMENDATIONS[root_cause]} ({len(errors)}: {shown})")
        return recommendations
