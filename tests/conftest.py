"""Shared test fixtures for error-resolver."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from error_resolver.config.schema import RunConfig
from error_resolver.core.analyzer import DiagnosticAnalyzer
from error_resolver.models.diagnostic import AnalyzedError
from error_resolver.utils.logging import clear_context
from error_resolver.utils.metrics import MetricsRegistry

# Ten diagnostics across three files: six syntax, four unused
SCENARIO_DIAGNOSTICS = "\n".join(
    [
        "src/App.tsx(3,15): error TS1005: ',' expected.",
        "src/App.tsx(7,1): error TS1128: Declaration or statement expected.",
        "src/App.tsx(12,9): error TS1109: Expression expected.",
        "src/utils.ts(4,22): error TS1005: ';' expected.",
        "src/utils.ts(9,3): error TS1003: Identifier expected.",
        "src/Button.tsx(2,10): error TS17002: Expected corresponding JSX closing tag for 'div'.",
        "src/App.tsx(1,8): error TS6133: 'React' is declared but its value is never read.",
        "src/utils.ts(1,1): error TS6192: All imports in import declaration are unused.",
        "src/Button.tsx(5,7): error TS6133: 'unused' is declared but its value is never read.",
        "src/Button.tsx(6,7): error TS6196: 'Props' is declared but never used.",
    ]
)

SCENARIO_FILES = {
    "src/App.tsx": "import React from 'react';\nexport const App = () => <div>{[a b]}</div>\n",
    "src/utils.ts": "import { x } from './x';\nexport function f(a b) {}\n",
    "src/Button.tsx": "export const Button = () => <div>\nconst unused = 1;\n",
}


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    """Start every test with a fresh metrics registry."""
    MetricsRegistry.reset()
    yield
    MetricsRegistry.reset()


@pytest.fixture(autouse=True)
def reset_log_context() -> Iterator[None]:
    """Drop any run or phase bound to the logging context."""
    clear_context()
    yield
    clear_context()


@pytest.fixture
def scenario_diagnostics() -> str:
    """Return the ten-diagnostic, three-file sample output."""
    return SCENARIO_DIAGNOSTICS


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Create a project root holding the scenario's three source files."""
    for relative, content in SCENARIO_FILES.items():
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return tmp_path


@pytest.fixture
def run_config() -> RunConfig:
    """Run options with validation off and no waits between retries."""
    return RunConfig(validation_enabled=False, retry_backoff=0.0)


@pytest.fixture
def analyzed_errors(scenario_diagnostics: str) -> list[AnalyzedError]:
    """Return the scenario diagnostics, analyzed."""
    return DiagnosticAnalyzer().analyze(scenario_diagnostics)
