import argparse
import json
import sys

from irongate.workflows.catalog import WorkflowCatalog
from irongate.workflows.exception import WorkflowPackagingError
from irongate.workflows.observability import ensure_logging
from irongate.workflows.packager import PackageReport, WorkflowPackager
from irongate.workflows.runtime.settings import load_settings
from irongate.workflows.validation import DefinitionValidator


def _settings_for(args):
    overrides = {}
    if getattr(args, "src", None):
        overrides["src_dir"] = args.src
    if getattr(args, "out", None):
        overrides["out_dir"] = args.out
    return load_settings(overrides or None, config_path=getattr(args, "config", None))


def _print_report(report: PackageReport, *, as_json: bool, verb: str) -> int:
    if as_json:
        print(json.dumps(report.as_dict(), ensure_ascii=False))
    else:
        for r in report.results:
            if r.ok:
                print(f"[*] {r.workflow_id}: {len(r.nodes)} code node(s)")
        for name in report.pruned:
            print(f"[-] removed stale output {name}")
        print(f"[*] {verb} {report.processed}/{report.discovered} workflows")
    failed = report.failure
    if failed is not None:
        print(f"[!] {failed.error}", file=sys.stderr)
        return 2
    return 0


def main(argv=None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = argparse.ArgumentParser(prog="irongate-workflows", description="Package Irongate workflows")
    sp = parser.add_subparsers(dest="cmd", required=True)

    buildp = sp.add_parser("build", help="Validate, compile and write every workflow")
    buildp.add_argument("--src", default=None, help="Workflow source directory (defaults to IRONGATE_WORKFLOWS_SRC or settings)")
    buildp.add_argument("--out", default=None, help="Output directory (defaults to IRONGATE_WORKFLOWS_OUT or settings)")
    buildp.add_argument("--only", nargs="+", default=None, metavar="ID", help="Package only these workflow ids")
    buildp.add_argument("--config", default=None, help="YAML build config")
    buildp.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    valp = sp.add_parser("validate", help="Validate workflows without compiling or writing")
    valp.add_argument("--src", default=None, help="Workflow source directory")
    valp.add_argument("--only", nargs="+", default=None, metavar="ID")
    valp.add_argument("--config", default=None, help="YAML build config")
    valp.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    listp = sp.add_parser("list", help="List packaged workflows in an output directory")
    listp.add_argument("--assets", required=True, help="Packaged workflows directory")
    listp.add_argument("--search", default=None, help="Filter by name or id (case-insensitive)")
    listp.add_argument("--lenient", action="store_true", help="Skip unreadable workflows instead of failing")
    listp.add_argument("--json", action="store_true", help="Output machine-readable JSON")

    sp.add_parser("schema", help="Print the JSON Schema of definition.json")

    args = parser.parse_args(argv)

    if args.cmd == "schema":
        print(json.dumps(DefinitionValidator().json_schema(), indent=2, ensure_ascii=False))
        return 0

    if args.cmd == "list":
        catalog = WorkflowCatalog(args.assets, mode="lenient" if args.lenient else "strict")
        try:
            catalog.load()
        except WorkflowPackagingError as e:
            print(f"[!] {e}", file=sys.stderr)
            return 2
        items = catalog.search(args.search) if args.search else catalog.workflows()
        if args.json:
            print(json.dumps([w.as_dict() for w in items], ensure_ascii=False))
        else:
            for w in items:
                print(f"{w.id}\t{w.version}\t{w.name}")
        return 0

    try:
        settings = _settings_for(args)
    except (OSError, ValueError) as e:
        print(f"[!] {e}", file=sys.stderr)
        return 2
    ensure_logging(settings)
    packager = WorkflowPackager(settings)

    try:
        if args.cmd == "build":
            report = packager.package_all(only=args.only)
            return _print_report(report, as_json=args.json, verb="Packaged")
        if args.cmd == "validate":
            report = packager.validate_all(only=args.only)
            return _print_report(report, as_json=args.json, verb="Validated")
    except WorkflowPackagingError as e:
        print(f"[!] {e}", file=sys.stderr)
        return 2

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
