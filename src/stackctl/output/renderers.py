"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO). The caller
extracts the rendered text via ``get_output(console)``.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from stackctl.output.console import create_console, get_output, style_for_role, style_for_state

if TYPE_CHECKING:
    from rich.console import Console

    from stackctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
        if verbose:
            _render_meta(console, result)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Render minimal output for ``--quiet`` mode."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    if result.op == "check":
        healthy = result.data.get("healthy", True)
        return f"{'OK' if healthy else 'UNHEALTHY'}: check ({result.data.get('count', 0)} issues)"

    # ps lists one line per service
    items = result.data.get("items")
    if items and isinstance(items, list) and all("service" in i for i in items):
        return "\n".join(f"{i['service']} {i.get('state', '')}".rstrip() for i in items)

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="stack.ok")
    op = Text(f"  {result.op}", style="stack.op")
    console.print(label, op, sep="", end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="stack.key")
    if isinstance(value, (dict, list)):
        v = Text(json.dumps(value, separators=(",", ":")))
    elif key in ("path", "config", "output_dir", "project_root", "cert", "key"):
        v = Text(str(value), style="stack.path")
    elif "fingerprint" in key:
        v = Text(str(value), style="stack.fingerprint")
    else:
        v = Text(str(value))
    console.print(k, v, sep="", end="")
    console.print()


def _state(value: str) -> Text:
    return Text(value, style=style_for_state(value))


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print meta block including telemetry span tree (verbose only)."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}", markup=False)


def _render_telemetry_tree(console: Console, span: dict[str, Any], indent: int = 4) -> None:
    """Render the span tree; slow spans are highlighted."""
    prefix = " " * indent
    duration = span.get("duration_ms", 0.0)
    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {span.get('name', '?')}"
    annotations = span.get("annotations") or {}
    if annotations:
        line += "  (" + ", ".join(f"{k}={v}" for k, v in annotations.items()) + ")"
    console.print(line)

    for child in span.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="stack.error")
    op = Text(f"  {result.op}", style="stack.op")
    code = Text(f" [{err.code}]" if err else "", style="stack.key")
    console.print(label, op, code, Text(f": {msg}"), sep="", end="")
    console.print()

    if not err or not err.detail:
        return
    problems = err.detail.get("problems") or err.detail.get("issues")
    if problems:
        for problem in problems:
            console.print(f"  - {problem.get('message', problem)}", markup=False)
    if verbose:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}", markup=False)


# ── Project renderers ─────────────────────────────────────────────────


def _render_files(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render init/render results: which files were written, which kept."""
    _status_line(console, result)
    d = result.data
    for key in ("project", "project_root", "output_dir", "config"):
        if d.get(key):
            _field(console, key, d[key])
    for label, style in (("written", "stack.ok"), ("kept", "stack.key")):
        files = d.get(label, [])
        if files:
            console.print(Text(f"  {label}:", style="stack.key"))
            for f in files:
                console.print(Text(f"    {f}", style=style))

    artifacts = d.get("artifacts")
    if artifacts:
        created = [s["path"] for s in artifacts.get("secrets", []) if s.get("created")]
        if created:
            _field(console, "secrets_created", len(created))
        cert = artifacts.get("certificate", {})
        if cert.get("fingerprint"):
            _field(console, "certificate_fingerprint", cert["fingerprint"])


def _render_topology(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render services, network membership, and the proxy->database path."""
    d = result.data
    services = Table(title="Services", show_header=True, pad_edge=False, expand=False)
    services.add_column("Service", style="stack.service", no_wrap=True)
    services.add_column("Role")
    services.add_column("Networks", style="stack.network")
    services.add_column("Published")
    if verbose:
        services.add_column("Secrets")
    for svc in d.get("services", []):
        row: list[Any] = [
            svc["name"],
            Text(str(svc.get("role") or "?"), style=style_for_role(svc.get("role"))),
            ", ".join(svc.get("networks", [])),
            ", ".join(svc.get("published", [])) or "-",
        ]
        if verbose:
            row.append(", ".join(svc.get("secrets", [])) or "-")
        services.add_row(*row)
    console.print(services)

    networks = Table(title="Networks", show_header=True, pad_edge=False, expand=False)
    networks.add_column("Network", style="stack.network", no_wrap=True)
    networks.add_column("Driver")
    networks.add_column("Members", style="stack.service")
    for net in d.get("networks", []):
        networks.add_row(net["name"], net.get("driver", ""), ", ".join(net.get("members", [])))
    console.print(networks)

    for pair, path in d.get("pivot_paths", {}).items():
        if path:
            console.print(f"  {pair}: via {' -> '.join(path)}")
        else:
            console.print(f"  {pair}: [stack.ok]no path[/stack.ok]")

    issues = d.get("issues", [])
    if issues:
        console.print()
        _print_issues(console, issues)
    elif d.get("healthy", True):
        console.print("[stack.ok]OK[/stack.ok]  Segmentation holds.")


def _print_issues(console: Console, issues: list[dict[str, Any]]) -> None:
    severity_styles = {"error": "stack.error", "warning": "stack.warning"}
    by_category: dict[str, list[dict[str, Any]]] = {}
    for issue in issues:
        by_category.setdefault(str(issue.get("category", "unknown")), []).append(issue)

    for cat, cat_issues in by_category.items():
        console.print()
        console.print(Text(cat, style="bold"))
        for issue in cat_issues:
            sev = str(issue.get("severity", "warning"))
            services = issue.get("services") or []
            tag = f" ({', '.join(services)})" if services else ""
            console.print(
                Text.assemble(
                    "  ",
                    (sev, severity_styles.get(sev, "")),
                    tag,
                    ": ",
                    str(issue.get("message", "")),
                )
            )


def _render_check(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render check results with issues grouped by category."""
    issues = result.data.get("issues", [])
    if not issues:
        console.print("[stack.ok]OK[/stack.ok]  No issues found.")
        return
    _print_issues(console, issues)
    errors = result.data.get("error_count", 0)
    warnings = result.data.get("warning_count", 0)
    console.print(f"\n{errors} errors, {warnings} warnings")


# ── Artifact renderers ────────────────────────────────────────────────


def _render_artifacts(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render secrets status as a table of files and their state."""
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("Kind")
    table.add_column("Path", style="stack.path")
    table.add_column("State")
    table.add_column("Detail")
    for item in result.data.get("items", []):
        detail = item.get("message", "")
        if item.get("kind") == "certificate" and "not_after" in item:
            detail = f"expires {item['not_after'][:10]} ({item.get('days_remaining')} days)"
            if verbose:
                detail += f"\n{item.get('fingerprint', '')}"
        table.add_row(
            str(item.get("kind", "")),
            str(item.get("path", "")),
            _state(str(item.get("state", ""))),
            detail,
        )
    console.print(table)


def _render_generate(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for secret in result.data.get("secrets", []):
        state = "created" if secret.get("created") else "kept"
        console.print(f"  {state:<8} {secret['path']}")
    cert = result.data.get("certificate", {})
    if cert:
        state = "created" if cert.get("created") else "kept"
        console.print(f"  {state:<8} {cert.get('cert')}")
        _field(console, "fingerprint", cert.get("fingerprint", ""))
        _field(console, "not_after", cert.get("not_after", ""))


# ── Lifecycle renderers ───────────────────────────────────────────────


def _render_ps(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("Service", style="stack.service", no_wrap=True)
    table.add_column("Role")
    table.add_column("State")
    table.add_column("Status")
    if verbose:
        table.add_column("Container", style="dim")
    for item in result.data.get("items", []):
        row: list[Any] = [
            item["service"],
            Text(item.get("role", ""), style=style_for_role(item.get("role"))),
            _state(item.get("state", "")),
            item.get("status", ""),
        ]
        if verbose:
            row.append(item.get("container", ""))
        table.add_row(*row)
    console.print(table)
    console.print(f"\n{result.data.get('running', 0)}/{result.data.get('count', 0)} running")


def _render_probe(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render a passing probe: PASS line plus its evidence."""
    label = Text("PASS", style="stack.ok")
    op = Text(f"  {result.op}", style="stack.op")
    console.print(label, op, sep="", end="")
    console.print()
    d = result.data
    for key, value in d.items():
        if key == "paths":
            for path, state in value.items():
                console.print(Text(f"  {path}: "), _state(state), sep="", end="")
                console.print()
        elif key == "directives":
            for header, variable in value.items():
                console.print(f"  proxy_set_header {header} {variable}")
        elif key == "example":
            if verbose:
                console.print(Text(f"  for client {value['client']}:", style="stack.key"))
                for header, seen in value["upstream_sees"].items():
                    console.print(f"    {header}: {seen}")
        else:
            _field(console, key, value)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "init": _render_files,
    "render": _render_files,
    "topology": _render_topology,
    "check": _render_check,
    "artifacts": _render_artifacts,
    "generate": _render_generate,
    "ps": _render_ps,
    "probe.tls": _render_probe,
    "probe.headers": _render_probe,
    "probe.gateway": _render_probe,
    "probe.isolation": _render_probe,
}
