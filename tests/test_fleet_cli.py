from __future__ import annotations

import allure
import pytest
from click.testing import CliRunner

from queue_fleet.main import queue_fleet

pytestmark = [
    allure.epic("Worker Fleet"),
    allure.feature("CLI"),
]


@pytest.fixture(autouse=True)
def _laravel_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "QUEUE_FLEET_BASE_PROGRAM",
        "QUEUE_FLEET_BASE_ARGS",
        "QUEUE_FLEET_SHIM_PROGRAM",
        "QUEUE_FLEET_DEFAULT_QUEUE",
        "QUEUE_FLEET_DEFAULT_QUEUE_COUNT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_plan_without_arguments_resolves_default_queue() -> None:
    result = CliRunner().invoke(queue_fleet, ["plan"])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines() == [
        "[01] default | herd php artisan queue:listen --queue default",
        "[02] default | herd php artisan queue:listen --queue default",
        "2 worker(s) resolved.",
    ]


def test_plan_with_queue_pairs_aligns_labels() -> None:
    result = CliRunner().invoke(queue_fleet, ["plan", "high", "1", "notifications"])

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "[01] high          | herd php artisan queue:listen --queue high"
    assert lines[1] == (
        "[02] notifications | herd php artisan queue:listen --queue notifications"
    )


def test_plan_no_herd_drops_shim_and_keeps_trailing_args() -> None:
    runner = CliRunner()
    shimmed = runner.invoke(queue_fleet, ["plan", "emails", "1", "-t", "30", "-v"])
    direct = runner.invoke(queue_fleet, ["plan", "emails", "1", "-t", "30", "-v", "--no-herd"])

    assert shimmed.exit_code == 0, shimmed.output
    assert direct.exit_code == 0, direct.output
    shimmed_command = shimmed.output.splitlines()[0].split(" | ", 1)[1]
    direct_command = direct.output.splitlines()[0].split(" | ", 1)[1]
    assert shimmed_command == "herd php artisan queue:listen --queue emails --timeout 30 -v"
    assert direct_command == "php artisan queue:listen --queue emails --timeout 30 -v"
    assert shimmed_command.removeprefix("herd ") == direct_command


def test_plan_count_form_and_use_work() -> None:
    result = CliRunner().invoke(queue_fleet, ["plan", "--count", "3", "--use-work", "-t", "60"])

    assert result.exit_code == 0, result.output
    assert result.output.splitlines()[:3] == [
        "[01] worker 1 | herd php artisan queue:work",
        "[02] worker 2 | herd php artisan queue:work",
        "[03] worker 3 | herd php artisan queue:work",
    ]


def test_plan_rejects_invalid_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUEUE_FLEET_DEFAULT_QUEUE_COUNT", "0")

    result = CliRunner().invoke(queue_fleet, ["plan"])

    assert result.exit_code == 1
    assert "QUEUE_FLEET_DEFAULT_QUEUE_COUNT" in result.output


def test_run_fails_fast_when_worker_cannot_start(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("QUEUE_FLEET_BASE_PROGRAM", "queue-fleet-no-such-binary")

    result = CliRunner().invoke(queue_fleet, ["run", "--no-herd", "--count", "2"])

    assert result.exit_code == 1
    assert "Worker command not found: queue-fleet-no-such-binary" in result.output


def test_count_must_be_positive() -> None:
    result = CliRunner().invoke(queue_fleet, ["plan", "--count", "0"])

    assert result.exit_code == 2
