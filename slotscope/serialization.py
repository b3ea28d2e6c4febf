"""
Export of analysis results as JSON, YAML or a plain text summary.
"""

import json
from typing import Any, Dict, List, Optional

import structlog
import yaml

from .analysis.contract_analyzer import ContractReport, RunResult, RunSummary
from .core.call_graph import CallGraphNode, CallType

logger = structlog.get_logger()

OUTPUT_FORMATS = ("json", "yaml", "summary")

_CALL_MARKERS = {
    CallType.INTERNAL: "",
    CallType.HIGH_LEVEL: " [high-level]",
    CallType.LOW_LEVEL: " [low-level]",
}


def report_to_dict(report: ContractReport) -> Dict[str, Any]:
    return report.to_dict()


def summary_to_dict(summary: RunSummary) -> Dict[str, Any]:
    return summary.to_dict()


def result_to_dict(result: RunResult) -> Dict[str, Any]:
    return result.to_dict()


def export_to_json(data: Dict[str, Any], filename: str) -> None:
    """Export data to a JSON file"""
    with open(filename, "w") as f:
        json.dump(data, f, indent=2)
    logger.info("Results exported", format="json", path=filename)


def export_to_yaml(data: Dict[str, Any], filename: str) -> None:
    """Export data to a YAML file"""
    with open(filename, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    logger.info("Results exported", format="yaml", path=filename)


def format_call_tree_text(node: CallGraphNode, indent: int = 0) -> str:
    """
    Render a call tree as an indented outline.

    External edges are marked with their call type; recursion cut-offs are
    marked with ``(recursive)``.
    """
    lines: List[str] = []

    def visit(current: CallGraphNode, depth: int) -> None:
        label = current.name
        if current.contract_name:
            label = f"{current.contract_name}.{label}"
        marker = _CALL_MARKERS[current.call_type]
        if current.low_level_kind is not None:
            marker = f" [low-level {current.low_level_kind.value}]"
        suffix = " (recursive)" if current.recursive else ""
        lines.append(f"{'  ' * depth}{label}{marker}{suffix}")
        for child in current.children:
            visit(child, depth + 1)

    visit(node, indent)
    return "\n".join(lines)


def format_summary_text(result: RunResult, show_trees: bool = False) -> str:
    """
    Human readable summary of a run.

    Args:
        result: The run to describe
        show_trees: Include the call tree of every root function
    """
    summary = result.summary
    lines = [
        "Analysis Summary",
        "================",
        f"Succeeded: {len(summary.succeeded)}",
        f"Skipped:   {len(summary.skipped)}",
        f"Failed:    {len(summary.failed)}",
    ]
    for name, error in summary.failed:
        lines.append(f"  {name}: {error}")

    for report in result.reports:
        stats = report.stats
        lines.append("")
        lines.append(f"Contract {report.name} ({report.source_path})")
        lines.append(
            f"  Functions: {len(report.roots)}, call nodes: {stats.total_nodes}, "
            f"external calls: {stats.external_calls} "
            f"(mutating: {stats.mutating_external_calls}, static: {stats.static_external_calls})"
        )
        lines.append(f"  Storage: {_storage_line(report)}")
        if show_trees:
            for root in report.roots:
                lines.append(format_call_tree_text(root, indent=2))
    return "\n".join(lines)


def _storage_line(report: ContractReport) -> str:
    if report.layout is None:
        error: Optional[Dict[str, Any]] = report.layout_error
        return f"unavailable ({error['message']})" if error else "unavailable"
    return f"{len(report.layout.slots)} slots, {len(report.layout.constants)} constants"


def export_results(result: RunResult, output_format: str, filename: Optional[str]) -> str:
    """
    Serialize a run in the requested format.

    Writes to ``filename`` when given and returns the rendered text either way.

    Raises:
        ValueError: For an unsupported format
    """
    if output_format not in OUTPUT_FORMATS:
        raise ValueError(f"Unsupported output format: {output_format}")

    if output_format == "summary":
        text = format_summary_text(result, show_trees=True)
        if filename:
            with open(filename, "w") as f:
                f.write(text + "\n")
            logger.info("Results exported", format="summary", path=filename)
        return text

    data = result_to_dict(result)
    if filename:
        if output_format == "json":
            export_to_json(data, filename)
        else:
            export_to_yaml(data, filename)
    if output_format == "json":
        return json.dumps(data, indent=2)
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
