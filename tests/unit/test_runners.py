"""Unit tests for the test-suite entry points."""

import importlib.util
from pathlib import Path
from unittest.mock import patch

ROOT = Path(__file__).resolve().parents[2]


def load_module(name, path):
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


run_tests = load_module("run_tests", ROOT / "run_tests.py")
tests_main = load_module("tests_main", ROOT / "tests" / "__main__.py")


class TestRunTests:
    """Suites are selected by directory, not by marker."""

    def test_unit_selects_unit_directory(self):
        cmd = run_tests.build_command(run_tests.parse_args(["--unit"]))

        assert cmd[:2] == ["pytest", "tests/unit"]
        assert "-m" not in cmd

    def test_unit_and_integration_run_both(self):
        cmd = run_tests.build_command(run_tests.parse_args(["--unit", "--integration"]))

        assert "tests/unit" in cmd
        assert "tests/integration" in cmd
        assert "-m" not in cmd

    def test_default_runs_whole_tree(self):
        cmd = run_tests.build_command(run_tests.parse_args([]))

        assert cmd == ["pytest", "tests"]

    def test_fast_deselects_slow(self):
        cmd = run_tests.build_command(run_tests.parse_args(["--integration", "--fast"]))

        assert cmd[1] == "tests/integration"
        assert cmd[cmd.index("-m") + 1] == "not slow"

    def test_main_runs_pytest(self):
        with patch.object(run_tests.subprocess, "run") as run:
            run.return_value.returncode = 0
            assert run_tests.main(["--unit", "--coverage"]) == 0

        cmd = run.call_args.args[0]
        assert "--cov=git_ai_metrics" in cmd


class TestModuleRunner:
    """`python -m tests [suite] [pytest args]`."""

    def test_suite_name_maps_to_directory(self):
        args = tests_main.pytest_args(["unit", "-x"])

        assert args[0] == str(tests_main.TESTS_DIR / "unit")
        assert args[-1] == "-x"

    def test_plain_args_run_everything(self):
        args = tests_main.pytest_args(["-k", "fallback"])

        assert args[0] == str(tests_main.TESTS_DIR)
        assert args[-2:] == ["-k", "fallback"]
