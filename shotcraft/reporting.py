"""
Console reporting for compilation runs.

Shows how the candidates scored and puts the base module's answers next to
the compiled module's answers on a set of questions.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from shotcraft._core.error import GenerationError
from shotcraft._core.logging import get_logger
from shotcraft.compiler import CompilationReport
from shotcraft.dataset import LabeledPair
from shotcraft.modules import PromptModule

logger = get_logger(__name__)


@dataclass
class ComparisonRow:
    """One question answered by both the base and the compiled module."""

    question: str
    expected: str
    base_answer: str
    compiled_answer: str


async def _answer(module: PromptModule, question: str, temperature: float) -> str:
    try:
        return await module.run(question, temperature=temperature)
    except GenerationError as e:
        logger.warning_highlight(f'No answer from {module!r}: {e}')
        return ''


async def compare_modules(
    base: PromptModule,
    compiled: PromptModule,
    pairs: Sequence[LabeledPair],
    temperature: float = 0.0,
) -> List[ComparisonRow]:
    """
    Answer every pair with both modules, running the two side by side.

    Args:
        base: The module before compilation.
        compiled: The module returned by the compiler.
        pairs: Questions to ask, usually the held-out tail.
        temperature: Sampling temperature for both modules.

    Returns:
        One row per pair, in order.
    """
    rows = []
    for pair in pairs:
        question = pair.get_field(base.input_field)
        base_answer, compiled_answer = await asyncio.gather(
            _answer(base, question, temperature),
            _answer(compiled, question, temperature),
        )
        rows.append(
            ComparisonRow(
                question=question,
                expected=pair.get_field(base.output_field),
                base_answer=base_answer,
                compiled_answer=compiled_answer,
            )
        )
    return rows


class ConsoleReporter:
    """
    Renders compilation results to the terminal with rich.

    Example:
        >>> reporter = ConsoleReporter()
        >>> reporter.render_report(report)
        >>> reporter.render_comparison(await compare_modules(base, best, holdout))
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def render_report(self, report: CompilationReport) -> None:
        """Render candidate scores and the winning template."""
        self.console.print('\n📊 [bold]Few-shot Compilation Results[/bold]')

        table = Table(show_header=True, header_style='bold magenta')
        table.add_column('Candidate', style='cyan')
        table.add_column('Exemplars')
        table.add_column('Score', justify='right')
        for index, variant in enumerate(report.variants):
            marker = ' 🏆' if index == report.best_index else ''
            table.add_row(
                f'#{index}{marker}',
                ', '.join(str(i) for i in variant.exemplar_indices),
                f'{report.scores[index]}/{report.exam.max_score}',
            )
        self.console.print(table)

        degraded = sum(1 for e in report.exemplars if e.degraded)
        if degraded:
            self.console.print(
                f'⚠️  {degraded}/{len(report.exemplars)} exemplars have placeholder reasoning'
            )
        failures = len(report.exam.failures)
        if failures:
            self.console.print(
                f'⚠️  {failures}/{len(report.exam.records)} answers scored 0 after a failure'
            )
        if report.elapsed_time is not None:
            self.console.print(f'⏱️  Finished in {report.elapsed_time:.2f}s')

        self.console.print(
            Panel(
                Text(report.best_module.template),
                title=f'Best template (candidate #{report.best_index})',
                expand=False,
            )
        )

    def render_comparison(self, rows: Sequence[ComparisonRow]) -> None:
        """Render expected, base and compiled answers for each question."""
        for row in rows:
            self.console.rule()
            self.console.print(f'❓ [bold]Question[/bold]: {escape(row.question)}')
            self.console.print(f'🎯 [bold]Expected[/bold]: {escape(row.expected)}')
            self.console.print(f'📝 [bold]Base module[/bold]: {escape(row.base_answer)}')
            self.console.print(f'🏆 [bold]Compiled module[/bold]: {escape(row.compiled_answer)}')
        self.console.rule()
