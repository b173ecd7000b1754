import json
import os
import pathlib
import subprocess
import sys

import pytest

from managed_ad_fsx.managed_ad_fsx_app import resolve_log_level

# これを実行するには、プロジェクトのルートディレクトリから `python -m pytest` を実行してください

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]


def _run_app(tmp_path, context):
    env = dict(os.environ)
    env["CDK_CONTEXT_JSON"] = json.dumps(context)
    env["CDK_OUTDIR"] = str(tmp_path / "cdk.out")
    return subprocess.run(
        [sys.executable, "app.py"],
        cwd=PROJECT_ROOT,
        env=env,
        capture_output=True,
        text=True,
        timeout=600
    )


def test_resolve_log_level_normalizes_case():
    assert resolve_log_level("debug") == "DEBUG"
    assert resolve_log_level(" Warning ") == "WARNING"
    assert resolve_log_level("INFO") == "INFO"


def test_resolve_log_level_falls_back_to_info():
    assert resolve_log_level(None) == "INFO"
    assert resolve_log_level("") == "INFO"
    assert resolve_log_level("verbose") == "INFO"


@pytest.mark.parametrize("log_level", ["debug", "verbose"])
def test_app_synthesizes_with_any_log_level(tmp_path, log_level):
    result = _run_app(tmp_path, {"log-level": log_level})

    assert result.returncode == 0, result.stderr
    # 2スタック分のテンプレートが出力される
    templates = sorted(p.name for p in (tmp_path / "cdk.out").glob("*.template.json"))
    assert templates == ["FSxStack.template.json", "ManagedMSADStack.template.json"]
