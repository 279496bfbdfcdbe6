"""Shared option handling tests.

Test coverage:
- Argument resolution (list, string, invalid shapes)
- Environment merging
- Identity resolution
- PATH helpers
- RunOptions / SpawnOptions validation and coercion
"""

from __future__ import annotations

import math
import os
from pathlib import Path
from unittest import mock

import pytest

from conftest import posix_only

from hostexec.errors import OptionsValidationError
from hostexec.runtime.options import (
    RunOptions,
    SpawnOptions,
    build_env,
    coerce_options,
    find_in_path,
    is_in_path,
    resolve_args,
    resolve_identity,
    running_as_root,
)


class TestResolveArgs:
    """Test argument normalization."""

    def test_none(self):
        assert resolve_args(None) == []

    def test_list(self):
        assert resolve_args(["-n", "a b"]) == ["-n", "a b"]

    def test_tuple_items_converted(self):
        assert resolve_args(("-c", 3)) == ["-c", "3"]

    def test_string_keeps_quoted_groups(self):
        assert resolve_args('-n "a b" c') == ["-n", "a b", "c"]

    @pytest.mark.parametrize("args", [b"raw", {"a": 1}, 42])
    def test_invalid(self, args):
        with pytest.raises(OptionsValidationError):
            resolve_args(args)


class TestBuildEnv:
    """Test environment merging."""

    def test_none_inherits(self):
        assert build_env(None) is None

    def test_additions_override(self):
        with mock.patch.dict(os.environ, {"HOSTEXEC_A": "old", "HOSTEXEC_B": "kept"}):
            env = build_env({"HOSTEXEC_A": "new", "HOSTEXEC_C": 1})
        assert env["HOSTEXEC_A"] == "new"
        assert env["HOSTEXEC_B"] == "kept"
        assert env["HOSTEXEC_C"] == "1"


@posix_only
class TestResolveIdentity:
    """Test user/group resolution."""

    def test_inherit(self):
        assert resolve_identity() == (None, None)

    def test_numeric(self):
        assert resolve_identity(uid=1000, gid=1000) == (1000, 1000)

    def test_numeric_strings(self):
        assert resolve_identity(run_as="1000", gid="100") == (1000, 100)

    def test_username(self):
        import pwd

        entry = pwd.getpwuid(os.getuid())
        assert resolve_identity(run_as=entry.pw_name) == (entry.pw_uid, None)

    def test_run_as_and_uid_agree(self):
        assert resolve_identity(run_as=0, uid="root") == (0, None)

    def test_conflict(self):
        with pytest.raises(OptionsValidationError, match="Conflicting"):
            resolve_identity(run_as=0, uid=1)

    def test_unknown_user(self):
        with pytest.raises(OptionsValidationError, match="Unknown user"):
            resolve_identity(run_as="no_such_user_hostexec")


class TestHostHelpers:
    """Test PATH lookup and privilege helpers."""

    def test_find_in_path(self, temp_workspace: Path):
        tool = temp_workspace / "hostexec-tool"
        tool.write_text("#!/bin/sh\n")
        with mock.patch.dict(os.environ, {"PATH": os.pathsep.join(["", str(temp_workspace)])}):
            assert find_in_path("hostexec-tool") == str(tool)
            assert is_in_path("hostexec-tool") is True
            assert find_in_path("missing-tool") is None
            assert is_in_path("missing-tool") is False

    def test_empty_path(self):
        with mock.patch.dict(os.environ, {"PATH": ""}):
            assert find_in_path("sh") is None

    @posix_only
    def test_running_as_root(self):
        assert running_as_root() is (os.geteuid() == 0)


class TestOptionsValidation:
    """Test eager validation of option structs."""

    def test_defaults(self):
        options = RunOptions()
        assert options.log_command is True
        assert options.retrieve_std_streams is False
        assert options.input_bytes is None

    def test_log_command_default_from_config(self, monkeypatch):
        from hostexec.config import reload_config

        monkeypatch.setenv("HOSTEXEC_LOG_COMMANDS", "0")
        reload_config()
        assert RunOptions().log_command is False
        assert SpawnOptions().log_command is False

    def test_input_bytes(self):
        assert RunOptions(input="é").input_bytes == "é".encode("utf-8")
        assert SpawnOptions(input=bytearray(b"x")).input_bytes == b"x"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"env": ["A=1"]},
            {"input": 5},
            {"uid": True},
            {"gid": -2},
            {"run_as": 1.5},
            {"logger": "log"},
        ],
    )
    def test_invalid_common_fields(self, kwargs):
        with pytest.raises(OptionsValidationError):
            RunOptions(**kwargs)

    def test_spawn_callbacks_must_be_callable(self):
        with pytest.raises(OptionsValidationError, match="on_stderr"):
            SpawnOptions(on_stderr=42)

    def test_wait_timeout(self):
        assert SpawnOptions().wait_timeout is None
        assert SpawnOptions(timeout=math.inf).wait_timeout is None
        assert SpawnOptions(timeout=2).wait_timeout == 2.0


class TestCoerceOptions:
    """Test building options from objects or keywords."""

    def test_from_keywords(self):
        options = coerce_options(None, {"cwd": "/"}, RunOptions)
        assert options == RunOptions(cwd="/")

    def test_unknown_keyword(self):
        with pytest.raises(OptionsValidationError):
            coerce_options(None, {"nope": 1}, RunOptions)

    def test_instance_passthrough(self):
        options = RunOptions()
        assert coerce_options(options, {}, RunOptions) is options

    def test_both_rejected(self):
        with pytest.raises(OptionsValidationError, match="not both"):
            coerce_options(RunOptions(), {"cwd": "/"}, RunOptions)

    def test_wrong_type(self):
        with pytest.raises(OptionsValidationError, match="RunOptions"):
            coerce_options(SpawnOptions(), {}, RunOptions)
