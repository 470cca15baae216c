from typing import Optional

# Environment
from shotcraft._core.environment import settings

# Completion boundary
from shotcraft.completion import (
    CompletionClient,
    LiteLLMCompletionClient,
    get_default_client,
)

# Compilation pipeline
from shotcraft.compiler import CompilationReport, CompilerConfig, FewShotCompiler
from shotcraft.dataset import Dataset, LabeledPair, load_dataset
from shotcraft.exam import ExamResult, ExamRunner, GradeRecord, parse_grade
from shotcraft.exemplars import Exemplar, ExemplarFailurePolicy, ExemplarGenerator
from shotcraft.llm_registry import LLMRegistry
from shotcraft.modules import (
    ChainOfThoughtModule,
    ModuleType,
    PromptModule,
    create_module,
)
from shotcraft.reporting import ComparisonRow, ConsoleReporter, compare_modules
from shotcraft.selector import select_best, select_best_index
from shotcraft.variants import Variant, VariantFactory


def init(
    log_level: Optional[str] = None,
    log_rich: Optional[bool] = None,
    log_file: Optional[str] = None,
) -> None:
    """
    Initialize shotcraft logging with optional overrides.

    Call once at startup to override settings. If not called, logging
    configures itself on first use.

    Args:
        log_level: Logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR').
            If None, uses LOG_LEVEL env var or 'INFO'.
        log_rich: Enable rich formatting. If None, uses LOG_USE_RICH env var.
        log_file: Also write logs to this file.

    Example:
        >>> import shotcraft
        >>> shotcraft.init(log_level='DEBUG')
    """
    from shotcraft.logging import configure_logging

    configure_logging(
        level=log_level, use_rich=log_rich, file_path=log_file, force=True
    )


__all__ = [
    # Initialization
    'init',
    'settings',
    # Data
    'Dataset',
    'LabeledPair',
    'load_dataset',
    # Modules
    'ModuleType',
    'PromptModule',
    'ChainOfThoughtModule',
    'create_module',
    # Pipeline
    'Exemplar',
    'ExemplarFailurePolicy',
    'ExemplarGenerator',
    'Variant',
    'VariantFactory',
    'ExamRunner',
    'ExamResult',
    'GradeRecord',
    'parse_grade',
    'select_best',
    'select_best_index',
    'FewShotCompiler',
    'CompilerConfig',
    'CompilationReport',
    # Completion
    'CompletionClient',
    'LiteLLMCompletionClient',
    'get_default_client',
    'LLMRegistry',
    # Reporting
    'ComparisonRow',
    'ConsoleReporter',
    'compare_modules',
]
