# stepscope/cli.py
# CLI for stepping through a script and dumping its snapshots, CFG, AST or call tree.

from __future__ import annotations

import argparse
import json
import logging
import sys
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from .cfg import build_cfg, layout_cfg, mark_executed_cfg_nodes
from .errors import JSSyntaxError
from .export import (
    call_tree_to_dict,
    cfg_to_dict,
    snapshots_to_list,
    tree_to_dict,
    write_cfg_dot,
)
from .interpreter import MAX_STEPS, Interpreter
from .trees import build_call_tree, parse_ast
from .values import display

log = logging.getLogger(__name__)

SCHEMAS = {
    "snapshots": "stepscope-snapshot.schema.json",
    "cfg": "stepscope-cfg.schema.json",
}


def load_schema(name: str) -> Dict[str, Any]:
    """Load one of the JSON Schemas shipped inside the package (stepscope/schemas/)."""
    ref = resources.files(__package__) / "schemas" / SCHEMAS[name]
    return json.loads(ref.read_text(encoding="utf-8"))


def _validate(doc: Dict[str, Any]) -> None:
    if "snapshots" in doc:
        schema = load_schema("snapshots")
        for snap in doc["snapshots"]:
            jsonschema.validate(instance=snap, schema=schema)
    if "cfg" in doc:
        jsonschema.validate(instance=doc["cfg"], schema=load_schema("cfg"))


def _print_summary(snapshots) -> None:
    last = snapshots[-1]
    for out in last.output:
        print(" ".join(display(a) for a in out.args))
    if last.global_variables:
        print("--- globals")
        for name, var in last.global_variables.items():
            print(f"{name} = {display(var.value)}")
    if last.error_state is not None:
        err = last.error_state
        print(f"error at line {err.line}:{err.column}: {err.message}", file=sys.stderr)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="stepscope",
        description="Run a script step by step; print console output, snapshots, and derived graphs.",
    )
    p.add_argument("path", nargs="?", help="Path to the script file.")
    p.add_argument("--snapshots", action="store_true", help="Emit every execution snapshot as JSON.")
    p.add_argument("--cfg", action="store_true", help="Emit the laid-out control-flow graph (with executed marks).")
    p.add_argument("--ast", action="store_true", help="Emit the syntax tree.")
    p.add_argument("--call-tree", action="store_true", help="Emit the call tree rebuilt from the snapshots.")
    p.add_argument("--cfg-dot", metavar="PATH", help="Write the control-flow graph as Graphviz DOT to PATH.")
    p.add_argument("--out", metavar="PATH", help="Write the JSON document to PATH instead of stdout.")
    p.add_argument("--max-steps", type=int, default=MAX_STEPS, help=f"Step ceiling (default: {MAX_STEPS}).")
    p.add_argument("--validate", action="store_true", help="Validate emitted JSON against the bundled schemas.")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging to stderr.")
    args = p.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.path:
        p.error("script path required (e.g., examples/factorial.js)")

    path = Path(args.path)
    if not path.is_file():
        print(f"stepscope: file not found: {path}", file=sys.stderr)
        return 2

    source = path.read_text(encoding="utf-8")
    interp = Interpreter(max_steps=args.max_steps)
    try:
        interp.parse(source)
    except JSSyntaxError as e:
        print(f"stepscope: SyntaxError: {e}", file=sys.stderr)
        return 2

    snapshots = interp.run()
    failed = snapshots[-1].error_state is not None
    log.debug("%s: %d snapshots", path, len(snapshots))

    doc: Dict[str, Any] = {}
    if args.snapshots:
        doc["snapshots"] = snapshots_to_list(snapshots)
    graph = None
    if args.cfg or args.cfg_dot:
        graph = mark_executed_cfg_nodes(layout_cfg(build_cfg(source)), snapshots)
    if args.cfg:
        doc["cfg"] = cfg_to_dict(graph)
    if args.ast:
        doc["ast"] = tree_to_dict(parse_ast(source))
    if args.call_tree:
        root = build_call_tree(snapshots)
        doc["callTree"] = call_tree_to_dict(root) if root is not None else None
    if args.cfg_dot:
        write_cfg_dot(Path(args.cfg_dot), graph)
        print(f"Wrote DOT: {args.cfg_dot}", file=sys.stderr)

    if args.validate:
        try:
            _validate(doc)
        except jsonschema.ValidationError as e:
            print(f"stepscope: schema validation failed: {e.message}", file=sys.stderr)
            return 1
        except OSError as e:
            print(f"stepscope: cannot load schema: {e}", file=sys.stderr)
            return 1

    if doc:
        text = json.dumps(doc, indent=2, ensure_ascii=False)
        if args.out:
            Path(args.out).write_text(text, encoding="utf-8")
            print(f"Wrote: {args.out}", file=sys.stderr)
        else:
            print(text)
    else:
        _print_summary(snapshots)

    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
