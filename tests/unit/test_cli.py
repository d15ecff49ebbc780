"""
Tests for the plan generation harness (cli.py).

The harness drives its own event loop through asyncio.run, so these tests are
synchronous and seed the store in a separate loop.
"""

import asyncio
import json

import pytest
from unittest.mock import patch

from grouper.ai.planner import build_stub_plan
from grouper.cli import build_parser, format_summary, main
from grouper.database.connection import Database
from grouper.database.repositories import BundleRepository, ProjectRepository
from grouper.models.plan import validate_plan


@pytest.fixture
def assignment_file(tmp_path):
    path = tmp_path / "assignment.txt"
    path.write_text("Build a poster about the water cycle with sources.", encoding="utf-8")
    return path


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


def seed_project(db_url, group_size=2):
    async def _seed():
        db = Database(db_url)
        try:
            project = await ProjectRepository(db).create(
                name="Water cycle poster",
                timeframe="twoDay",
                assignment_details="Build a poster about the water cycle.",
                group_size=group_size,
                join_code="WATER2",
            )
            return project.id
        finally:
            await db.close()
    return asyncio.run(_seed())


def load_bundles(db_url, project_id):
    async def _load():
        db = Database(db_url)
        try:
            return await BundleRepository(db).get_by_project(project_id)
        finally:
            await db.close()
    return asyncio.run(_load())


def test_stub_run_writes_plan(assignment_file, tmp_path, capsys):
    out = tmp_path / "out" / "plan.json"

    code = main([
        "--title", "Water cycle", "--timeframe", "oneWeek", "--group", "2",
        "--file", str(assignment_file), "--stub", "--out", str(out),
    ])

    assert code == 0
    plan = json.loads(out.read_text(encoding="utf-8"))
    assert [b["label"] for b in plan["bundles"]] == ["Person 1", "Person 2"]
    printed = capsys.readouterr().out
    assert "Bundles: 2" in printed
    assert "Person 1 (Bundle for Person 1) - tasks: 5" in printed
    assert f"Plan written to {out}" in printed


def test_missing_inputs_is_usage_error(capsys):
    code = main(["--title", "Water cycle", "--stub"])

    assert code == 1
    assert "required" in capsys.readouterr().err


def test_persist_requires_project(assignment_file, capsys):
    code = main([
        "--title", "Water cycle", "--timeframe", "oneWeek", "--group", "2",
        "--file", str(assignment_file), "--stub", "--persist",
    ])

    assert code == 1
    assert "--persist requires --project" in capsys.readouterr().err


def test_unreadable_file(tmp_path, capsys):
    code = main([
        "--title", "Water cycle", "--timeframe", "oneWeek", "--group", "2",
        "--file", str(tmp_path / "missing.txt"), "--stub",
    ])

    assert code == 1
    assert "Cannot read" in capsys.readouterr().err


def test_too_long_assignment_fails(tmp_path, capsys):
    path = tmp_path / "long.txt"
    path.write_text("x" * 20000, encoding="utf-8")

    code = main([
        "--title", "Essay", "--timeframe", "long", "--group", "1",
        "--file", str(path), "--stub", "--out", str(tmp_path / "plan.json"),
    ])

    assert code == 1
    assert "generatePlan failed" in capsys.readouterr().err
    assert not (tmp_path / "plan.json").exists()


def test_project_run_with_persist(db_url, tmp_path, capsys):
    project_id = seed_project(db_url, group_size=2)
    out = tmp_path / "plan.json"

    with patch("grouper.cli.Database", side_effect=lambda: Database(db_url)):
        code = main(["--project", str(project_id), "--stub", "--persist", "--out", str(out)])

    assert code == 0
    printed = capsys.readouterr().out
    assert "tasks: 2" in printed
    assert "Persisted:" in printed
    assert [b.label for b in load_bundles(db_url, project_id)] == ["Person 1", "Person 2"]


def test_flags_override_project_fields(db_url, tmp_path, capsys):
    project_id = seed_project(db_url, group_size=2)

    with patch("grouper.cli.Database", side_effect=lambda: Database(db_url)):
        code = main(["--project", str(project_id), "--group", "3", "--stub", "--out", str(tmp_path / "p.json")])

    assert code == 0
    assert "Bundles: 3" in capsys.readouterr().out


def test_unknown_project(db_url, capsys):
    seed_project(db_url)

    with patch("grouper.cli.Database", side_effect=lambda: Database(db_url)):
        code = main(["--project", "999", "--stub"])

    assert code == 1
    assert "Failed to load project 999" in capsys.readouterr().err


def test_format_summary_lines():
    plan = validate_plan(build_stub_plan("twoDay", 1), 1).plan

    lines = format_summary(plan)

    assert lines[0] == "Bundles: 1"
    assert lines[1].startswith("  Person 1 (")
    assert lines[2].startswith("    - [")
    assert len(lines) == 4


def test_parser_rejects_unknown_timeframe():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--timeframe", "oneMonth"])
