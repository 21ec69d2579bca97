from spawn_tools.ansi import strip_ansi
from spawn_tools.api import SpawnApi, SpawnOptions, create_spawn_api, venv_bin_path
from spawn_tools.controller import SpawnController, spawn_controller
from spawn_tools.errors import SpawnError, WatchTimeoutError
from spawn_tools.logs import configure_logging
from spawn_tools.output import OutputStream
from spawn_tools.spawn import (
    SpawnResult,
    spawn_output,
    spawn_output_conditional,
    spawn_result,
    spawn_to_completion,
)
from spawn_tools.watch import NO_TIMEOUT, OutputWatch, wait_for_output, watch_output

__all__ = [
    "NO_TIMEOUT",
    "OutputStream",
    "OutputWatch",
    "SpawnApi",
    "SpawnController",
    "SpawnError",
    "SpawnOptions",
    "SpawnResult",
    "WatchTimeoutError",
    "configure_logging",
    "create_spawn_api",
    "spawn_controller",
    "spawn_output",
    "spawn_output_conditional",
    "spawn_result",
    "spawn_to_completion",
    "strip_ansi",
    "venv_bin_path",
    "wait_for_output",
    "watch_output",
]
