import sys
import json
import numpy as np
import pytest

from sarcoreg.cli.correlate import main
from sarcoreg.correlate.common import OffsetEstimate
from sarcoreg.data.io_patches import load_patch_pair, offsets_to_records, save_patch_pair, write_offsets
from sarcoreg.data.simulate import shifted_pair
from sarcoreg.utils.config import load_config


if sys.version_info < (3, 8):
    pytest.skip("Requires Python 3.8+ for package code", allow_module_level=True)


@pytest.mark.parametrize("name", ["pair.npz", "pair.h5"])
def test_patch_pair_files(tmp_path, name):
    master, mask = shifted_pair((16, 16), (1, 2), seed=0)
    path = tmp_path / name
    save_patch_pair(str(path), master, mask)
    m2, s2 = load_patch_pair(str(path))
    np.testing.assert_array_equal(m2, master)
    np.testing.assert_array_equal(s2, mask)
    with pytest.raises(KeyError):
        load_patch_pair(str(path), master_key="reference")


def test_unsupported_suffix(tmp_path):
    with pytest.raises(ValueError):
        load_patch_pair(str(tmp_path / "pair.tif"))


def test_nan_score_written_as_null(tmp_path):
    ests = [OffsetEstimate(1.0, -0.5, 0.8), OffsetEstimate(0.0, 0.0, float("nan"), accepted=False)]
    recs = offsets_to_records(ests)
    assert recs[1]["index"] == 1 and recs[1]["peak_score"] is None
    out = tmp_path / "sub" / "offsets.json"
    write_offsets(str(out), ests, config={"method": "ncc"})
    doc = json.loads(out.read_text())
    assert doc["config"] == {"method": "ncc"}
    assert doc["offsets"][0]["offset_pixel"] == -0.5
    assert doc["offsets"][1]["peak_score"] is None


def test_load_config_json_section(tmp_path):
    p = tmp_path / "cfg.json"
    p.write_text(json.dumps({"correlation": {"method": "fft", "oversampling": 8}}))
    assert load_config(str(p)) == {"method": "fft", "oversampling": 8}
    p.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_config(str(p))


def test_load_config_yaml(tmp_path):
    pytest.importorskip("yaml")
    p = tmp_path / "cfg.yaml"
    p.write_text("method: space\nacc_l: 4\nacc_p: 4\n")
    assert load_config(str(p)) == {"method": "space", "acc_l": 4, "acc_p": 4}


def test_cli_demo(tmp_path, capsys):
    out = tmp_path / "offsets.json"
    rc = main(["--demo", "3", "-2", "--demo-size", "32", "--oversampling", "1", "--out", str(out)])
    assert rc == 0
    printed = json.loads(capsys.readouterr().out)
    assert (printed[0]["offset_line"], printed[0]["offset_pixel"]) == (3.0, -2.0)
    doc = json.loads(out.read_text())
    assert doc["config"]["method"] == "ncc"
    assert doc["config"]["oversampling"] == 1


def test_cli_stacked_hdf5_with_config(tmp_path, capsys):
    pairs = [shifted_pair((16, 16), s, seed=i) for i, s in enumerate([(1, 1), (-2, 0), (0, 3)])]
    path = tmp_path / "stack.h5"
    save_patch_pair(str(path), np.stack([m for m, _ in pairs]), np.stack([s for _, s in pairs]))
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"method": "fft", "oversampling": 1}))
    rc = main(["--input", str(path), "--config", str(cfg), "--workers", "2"])
    assert rc == 0
    printed = json.loads(capsys.readouterr().out)
    assert [(r["offset_line"], r["offset_pixel"]) for r in printed] == [(1.0, 1.0), (-2.0, 0.0), (0.0, 3.0)]


def test_cli_reports_rejected_input():
    rc = main(["--demo", "0", "0", "--demo-size", "8", "--method", "space", "--acc-l", "4", "--acc-p", "4"])
    assert rc == 2


def test_cli_mismatched_stacks_exit_with_usage_error(tmp_path):
    path = tmp_path / "stack.npz"
    np.savez(str(path), master=np.zeros((3, 16, 16), np.complex64), mask=np.zeros((2, 16, 16), np.complex64))
    with pytest.raises(SystemExit) as exc:
        main(["--input", str(path)])
    assert exc.value.code == 2


def test_cli_missing_dataset_exits_with_usage_error(tmp_path):
    path = tmp_path / "pair.npz"
    np.savez(str(path), master=np.zeros((16, 16), np.complex64))
    with pytest.raises(SystemExit) as exc:
        main(["--input", str(path)])
    assert exc.value.code == 2


def test_cli_non_integer_oversampling_in_config(tmp_path):
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"oversampling": 2.5}))
    with pytest.raises(SystemExit) as exc:
        main(["--demo", "1", "1", "--demo-size", "16", "--config", str(cfg)])
    assert exc.value.code == 2
