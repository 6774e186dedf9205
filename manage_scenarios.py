#!/usr/bin/env python3
from __future__ import annotations

"""
Command-line front end for the planning scenario engine.

Responsibilities:
- Configure logging to both console and `logs/scenarios.log`
- Load `config/engine.yaml` (or `--config`) and build the engine on JSON file storage
- Dispatch one subcommand:
  * `seed-live FILE`: load live planning collections from a YAML/JSON file
  * `list`, `create`, `delete`, `switch`: manage scenarios and the active context
  * `compare ID`: print the delta between a scenario and live data (optional CSV)
  * `sweep`: purge expired scenarios once
  * `templates`: list (or `--refresh`) scenario templates
  * `export FILE`, `import FILE`: exchange scenarios as JSON documents

Typed engine failures are reported on stderr with exit code 1.
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from planning_scenarios.config import load_engine_config
from planning_scenarios.errors import ScenarioError, ValidationFailure
from planning_scenarios.exchange import export_scenarios, import_scenarios
from planning_scenarios.models import CreateScenarioParams
from planning_scenarios.reporting import comparison_changes_frame, scenario_listing_frame, write_comparison_csv
from planning_scenarios.scenario_logic import ScenarioEngine, build_engine
from planning_scenarios.utils_logging import configure_logging


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Planning scenarios: create, compare and manage what-if scenarios")
    p.add_argument("--config", type=str, help="Path to an engine YAML config (default: config/engine.yaml)")
    p.add_argument("--storage-dir", type=str, help="Override the storage directory from the config")
    p.add_argument("--log-dir", type=str, help="Override the log directory from the config")
    p.add_argument("--debug", action="store_true")
    sub = p.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed-live", help="Replace live planning data from a YAML/JSON file")
    seed.add_argument("file", type=str)

    sub.add_parser("list", help="List stored scenarios")

    create = sub.add_parser("create", help="Create a scenario from live data")
    create.add_argument("name", type=str)
    create.add_argument("--description", type=str)
    create.add_argument("--template", type=str, help="Template id to apply")
    create.add_argument(
        "--param",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Template parameter (repeatable); values are parsed as YAML scalars",
    )
    create.add_argument("--expires-at", type=str, help="ISO-8601 expiry timestamp")

    delete = sub.add_parser("delete", help="Delete a scenario")
    delete.add_argument("scenario_id", type=str)

    switch = sub.add_parser("switch", help="Switch the active context")
    target = switch.add_mutually_exclusive_group(required=True)
    target.add_argument("scenario_id", type=str, nargs="?")
    target.add_argument("--live", action="store_true", help="Switch back to live data")

    compare = sub.add_parser("compare", help="Compare a scenario against live data")
    compare.add_argument("scenario_id", type=str)
    compare.add_argument("--csv-dir", type=str, help="Also write the changes as CSV into this directory")
    compare.add_argument("--json", action="store_true", help="Print the full comparison as JSON")

    sub.add_parser("sweep", help="Purge expired scenarios now")

    templates = sub.add_parser("templates", help="List scenario templates")
    templates.add_argument("--refresh", action="store_true", help="Re-sync built-in templates first")

    export = sub.add_parser("export", help="Export scenarios to a JSON file")
    export.add_argument("file", type=str)
    export.add_argument("--id", dest="ids", action="append", help="Scenario id to export (repeatable; default all)")

    imp = sub.add_parser("import", help="Import scenarios from an export file")
    imp.add_argument("file", type=str)

    return p.parse_args(argv)


def _parse_params(pairs: List[str]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValidationFailure(f"Template parameter must look like KEY=VALUE, got {pair!r}", field="param")
        key, raw = pair.split("=", 1)
        params[key.strip()] = yaml.safe_load(raw) if raw.strip() else None
    return params


def _load_data_file(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                return yaml.safe_load(f)
            return json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ValidationFailure(f"Could not parse {path}: {e}") from e
    except OSError as e:
        raise ValidationFailure(f"Could not read {path}: {e}") from e


def run_command(engine: ScenarioEngine, args: argparse.Namespace) -> int:
    log = logging.getLogger("manage_scenarios")
    store = engine.store

    if args.command == "seed-live":
        snapshot = engine.snapshotter.snapshot(_load_data_file(Path(args.file)))
        engine.live_source.save(snapshot)
        counts = {k: v for k, v in snapshot.counts().items() if v}
        print(f"Live data saved: {counts}")
    elif args.command == "list":
        scenarios = store.list()
        if not scenarios:
            print("No scenarios.")
        else:
            print(scenario_listing_frame(scenarios).to_string(index=False))
        active = store.active_scenario
        print(f"Active context: {active.name + ' (' + active.id + ')' if active else 'live'}")
    elif args.command == "create":
        params = CreateScenarioParams(
            name=args.name,
            description=args.description,
            template_id=args.template,
            template_parameters=_parse_params(args.param) if args.template else None,
            expires_at=args.expires_at,
        )
        scenario_id = store.create(params)
        print(scenario_id)
    elif args.command == "delete":
        store.delete(args.scenario_id)
        print(f"Deleted {args.scenario_id}")
    elif args.command == "switch":
        if args.live:
            store.switch_to_live()
            print("Active context: live")
        else:
            scenario = store.switch_to(args.scenario_id)
            print(f"Active context: {scenario.name} ({scenario.id})")
    elif args.command == "compare":
        comparison = engine.compare(args.scenario_id)
        if args.json:
            print(json.dumps(comparison.to_dict(), indent=2))
        else:
            summary = comparison.summary
            print(f"Scenario: {comparison.scenario_name} ({comparison.scenario_id})")
            print(f"Total changes: {summary.total_changes} | impact: {summary.impact_level}")
            print(f"By category: {summary.categorized_changes}")
            print(f"Total cost difference: {comparison.financial_impact.total_cost_difference:,.2f}")
            if comparison.changes:
                print(comparison_changes_frame(comparison).to_string(index=False))
        if args.csv_dir:
            out_path = write_comparison_csv(comparison, Path(args.csv_dir))
            log.info("Comparison CSV written to %s", out_path)
    elif args.command == "sweep":
        removed = engine.lifecycle.sweep()
        print(f"Purged {removed} expired scenario(s)")
    elif args.command == "templates":
        templates = engine.templates.refresh() if args.refresh else engine.templates.list()
        for template in templates:
            kind = "built-in" if template.is_default else "custom"
            print(f"{template.id}\t{template.name}\t{template.category}\t{kind}\tused {template.usage_count}x")
    elif args.command == "export":
        path = export_scenarios(store, Path(args.file), args.ids)
        print(f"Exported to {path}")
    elif args.command == "import":
        new_ids = import_scenarios(store, Path(args.file))
        print(f"Imported {len(new_ids)} scenario(s)")
        for scenario_id in new_ids:
            print(scenario_id)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = load_engine_config(Path(args.config) if args.config else None)
    if args.storage_dir:
        config = replace(config, storage_dir=Path(args.storage_dir))
    if args.log_dir:
        config = replace(config, log_dir=Path(args.log_dir))
    configure_logging(config.log_dir, debug=args.debug or config.debug)
    log = logging.getLogger("manage_scenarios")

    try:
        engine = build_engine(config)
        return run_command(engine, args)
    except ScenarioError as e:
        log.error("%s: %s", type(e).__name__, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
