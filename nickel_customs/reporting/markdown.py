"""Render check run output: the Markdown summary and line annotations.

The summary lists one line per package, in package root order, with nested
diagnostics for failures. Annotations carry the same diagnostics so GitHub
can show them inline; they are ordered by package root, then path, line,
severity and message, so repeated renders of a run are identical.
"""

from __future__ import annotations

import itertools
import typing as typ

from nickel_customs.checks.models import Conclusion
from nickel_customs.github.models import CheckRunAnnotation, CheckRunOutput
from nickel_customs.oracle.models import Errored, Failed

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from nickel_customs.checks.models import CheckRun

ANNOTATION_BATCH_SIZE: typ.Final = 50

_SHORT_SHA = 7

_TITLES: dict[Conclusion | None, str] = {
    Conclusion.SUCCESS: "All Nickel packages are sane",
    Conclusion.FAILURE: "Nickel package validation failed",
    Conclusion.NEUTRAL: "Nickel package validation was aborted",
    None: "Validating Nickel packages",
}


def _package_label(root: str) -> str:
    return root or "."


def render_title(run: CheckRun) -> str:
    """Return the one-line check run title for ``run``'s current state."""
    if run.conclusion is Conclusion.FAILURE:
        failed = sum(1 for outcome in run.outcomes.values() if not outcome.is_good)
        return f"{failed} of {len(run.outcomes)} Nickel package(s) failed"
    return _TITLES[run.conclusion]


def _render_package(lines: list[str], root: str, run: CheckRun) -> None:
    """Append the summary line, and any nested diagnostics, of one package."""
    label = _package_label(root)
    outcome = run.outcomes.get(root)
    match outcome:
        case None:
            lines.append(f"- ⏳ `{label}`")
        case Errored(reason=reason):
            lines.append(f"- ❌ `{label}`: {reason}")
        case Failed(diagnostics=diagnostics):
            lines.append(f"- ❌ `{label}`")
            lines.extend(
                f"  - `{diag.path}:{diag.line}` {diag.severity}: {diag.message}"
                for diag in diagnostics
            )
        case _:
            lines.append(f"- ✅ `{label}`")


def render_summary(run: CheckRun) -> str:
    """Render the Markdown summary of ``run``.

    Parameters
    ----------
    run
        The run to summarise, in any state.

    Returns
    -------
    str
        Markdown with a heading, an optional abort notice and one bullet per
        package.

    """
    key = run.key
    lines = [f"### Nickel packages at `{key.head_sha[:_SHORT_SHA]}`", ""]
    if run.abort_reason is not None:
        lines.extend([f"⚠️ Run aborted: {run.abort_reason}", ""])
    if not run.packages:
        lines.append("No Nickel packages were touched by this commit.")
    for root in sorted(run.packages):
        _render_package(lines, root, run)
    lines.append("")
    return "\n".join(lines)


def build_annotations(run: CheckRun) -> list[CheckRunAnnotation]:
    """Return the annotations of every failed package, in stable order."""
    keyed = [
        ((root, *diag.sort_key()), diag, root)
        for root, outcome in run.outcomes.items()
        for diag in outcome.diagnostics
    ]
    keyed.sort(key=lambda item: item[0])
    return [
        CheckRunAnnotation(
            path=diag.path,
            start_line=max(diag.line, 1),
            end_line=max(diag.line, 1),
            annotation_level=diag.severity.value,
            message=diag.message,
            title=f"nickel: {_package_label(root)}",
        )
        for _, diag, root in keyed
    ]


def batched(
    annotations: cabc.Sequence[CheckRunAnnotation],
    size: int = ANNOTATION_BATCH_SIZE,
) -> list[list[CheckRunAnnotation]]:
    """Split ``annotations`` into request-sized batches.

    An empty sequence yields a single empty batch so the completing update is
    always sent.
    """
    if size < 1:
        msg = f"batch size must be positive, got {size}"
        raise ValueError(msg)
    batches = [list(chunk) for chunk in itertools.batched(annotations, size)]
    return batches or [[]]


def render_output(
    run: CheckRun, annotations: cabc.Sequence[CheckRunAnnotation] = ()
) -> CheckRunOutput:
    """Return the check run ``output`` object for ``run``."""
    return CheckRunOutput(
        title=render_title(run),
        summary=render_summary(run),
        annotations=list(annotations),
    )
