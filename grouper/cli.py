"""
Plan generation harness.

Runs the plan generator directly, outside the HTTP orchestrators, writes the
plan to a JSON file and prints a per-bundle summary.

Usage:
    grouper-plan --project 42 [--persist]
    grouper-plan --title "..." --timeframe oneWeek --group 4 --file ./assignment.txt
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Load .env before settings are read
load_dotenv()

from config import settings  # noqa: E402
from .ai.exceptions import PlanError  # noqa: E402
from .ai.planner import PlanGenerator, PlanInput  # noqa: E402
from .database.connection import Database  # noqa: E402
from .database.exceptions import DatabaseError  # noqa: E402
from .database.repositories.projects import ProjectRepository  # noqa: E402
from .models.plan import Plan, Timeframe, bundle_effort  # noqa: E402
from .services.plan_persistence import PlanReconciler  # noqa: E402

logger = logging.getLogger(__name__)

DEFAULT_OUT = "tmp/plan.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grouper-plan",
        description="Generate a group project plan and print a bundle summary",
    )
    parser.add_argument("--project", type=int, help="Load inputs from an existing project")
    parser.add_argument("--title", help="Assignment title")
    parser.add_argument("--description", help="Optional short description")
    parser.add_argument("--timeframe", choices=[t.value for t in Timeframe], help="Project timeframe")
    parser.add_argument("--group", type=int, help="Group size (1-12)")
    parser.add_argument("--file", help="Path to a file with the assignment text")
    parser.add_argument("--out", default=DEFAULT_OUT, help=f"Output path (default: {DEFAULT_OUT})")
    parser.add_argument("--stub", action="store_true", help="Use the deterministic stub instead of OpenAI")
    parser.add_argument("--persist", action="store_true", help="Reconcile the plan into --project")
    return parser


def format_summary(plan: Plan) -> List[str]:
    lines = [f"Bundles: {len(plan.bundles)}"]
    for bundle in plan.bundles:
        lines.append(
            f"  {bundle.label} ({bundle.bundle_title}) - tasks: {len(bundle.tasks)}, effort: {bundle_effort(bundle)}"
        )
        for task in bundle.tasks:
            lines.append(f"    - [{task.size.value}/{task.effort_points}] {task.title}")
    return lines


async def load_project_input(projects: ProjectRepository, args: argparse.Namespace) -> Optional[PlanInput]:
    project = await projects.get_by_id(args.project)
    if project is None:
        return None
    plan_input = PlanInput.from_project(project)
    # Explicit flags override stored fields
    if args.title:
        plan_input.title = args.title
    if args.description:
        plan_input.description = args.description
    if args.timeframe:
        plan_input.timeframe = args.timeframe
    if args.group:
        plan_input.group_size = args.group
    return plan_input


async def run(args: argparse.Namespace) -> int:
    db: Optional[Database] = None
    try:
        if args.project is not None:
            db = Database()
            plan_input = await load_project_input(ProjectRepository(db), args)
            if plan_input is None:
                print(f"Failed to load project {args.project}", file=sys.stderr)
                return 1
        else:
            try:
                assignment = Path(args.file).read_text(encoding="utf-8")
            except OSError as e:
                print(f"Cannot read {args.file}: {e}", file=sys.stderr)
                return 1
            plan_input = PlanInput(
                title=args.title,
                description=args.description,
                timeframe=args.timeframe,
                assignment_details=assignment,
                group_size=args.group,
            )

        print(
            f"Generating plan: title={plan_input.title!r} timeframe={plan_input.timeframe} "
            f"group_size={plan_input.group_size} assignment_len={len(plan_input.assignment_details or '')}"
        )

        generator = PlanGenerator(use_stub=True if args.stub else None)
        try:
            plan = await generator.generate_plan(plan_input)
        except PlanError as e:
            print(f"generatePlan failed: {e}", file=sys.stderr)
            for detail in e.details:
                print(f"  {detail}", file=sys.stderr)
            return 1

        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(plan.to_payload(), indent=2), encoding="utf-8")

        for line in format_summary(plan):
            print(line)
        print(f"Plan written to {out_path}")

        if args.persist:
            try:
                result = await PlanReconciler(db).persist_plan(args.project, plan)
            except DatabaseError as e:
                print(f"persistPlan failed: {e}", file=sys.stderr)
                return 1
            print(f"Persisted: {result.to_dict()}")

        return 0
    finally:
        if db is not None:
            await db.close()


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.project is None and not (args.title and args.timeframe and args.group and args.file):
        parser.print_usage(sys.stderr)
        print("either --project or all of --title --timeframe --group --file are required", file=sys.stderr)
        return 1
    if args.persist and args.project is None:
        parser.print_usage(sys.stderr)
        print("--persist requires --project", file=sys.stderr)
        return 1

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
