import json
from pathlib import Path

import pandas as pd
import pytest

from eda_pipeline.cli import main


def _write_inputs(tmp_path: Path, config: dict):
    df = pd.DataFrame(
        {
            "carrier": ["UA", "DL", "UA", "DL"],
            "dep_delay": ["10", "NA", "20", "5"],
        }
    )
    csv_path = tmp_path / "flights.csv"
    df.to_csv(csv_path, index=False)
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text(json.dumps(config), encoding="utf-8")
    return csv_path, cfg_path


def test_cli_summary_and_json_output(tmp_path: Path, capsys):
    csv_path, cfg_path = _write_inputs(
        tmp_path,
        {
            "coercions": {"dep_delay": "integer"},
            "aggregation": {
                "keys": ["carrier"],
                "spec": {"avg_delay": {"column": "dep_delay", "reducer": "mean"}},
            },
        },
    )
    out_path = tmp_path / "payload.json"
    main(
        [
            str(csv_path),
            "--config",
            str(cfg_path),
            "--null-tokens",
            "--output",
            str(out_path),
            "--html",
            str(tmp_path / "table.html"),
            "--chart",
            str(tmp_path / "chart.png"),
            "--x",
            "carrier",
            "--y",
            "avg_delay",
        ]
    )
    printed = capsys.readouterr().out
    assert "Rows: 4 -> 4" in printed
    assert "Partitions: 2" in printed

    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert payload["schema"] == {"carrier": "text", "avg_delay": "float"}
    assert payload["rows"] == [
        {"carrier": "UA", "avg_delay": 15.0},
        {"carrier": "DL", "avg_delay": 5.0},
    ]
    assert payload["null_token_mappings"] == {"dep_delay": 1}
    assert payload["report"]["removed"]["dedup"] == 0
    assert (tmp_path / "table.html").exists()
    assert (tmp_path / "chart.png").exists()


def test_cli_reports_pipeline_errors(tmp_path: Path):
    csv_path, cfg_path = _write_inputs(
        tmp_path,
        {
            "aggregation": {
                "keys": ["carrier"],
                "spec": {"avg": {"column": "foo", "reducer": "mean"}},
            }
        },
    )
    with pytest.raises(SystemExit) as excinfo:
        main([str(csv_path), "--config", str(cfg_path), "--no-profile"])
    assert "[aggregation]" in str(excinfo.value.code)
    assert "foo" in str(excinfo.value.code)


def test_cli_missing_file(tmp_path: Path):
    with pytest.raises(SystemExit):
        main([str(tmp_path / "absent.csv")])
