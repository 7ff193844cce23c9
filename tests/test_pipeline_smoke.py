import json
import math

import pandas as pd
import pytest

from track_refinery.cli import main
from track_refinery.pipeline import (
    run_binned_table,
    run_correlation,
    run_mixture,
    run_refine,
    run_top_k_overlap,
    run_zip,
)
from track_refinery.synth import synth_dataset


@pytest.fixture
def synth(tmp_path):
    return synth_dataset(tmp_path / "synth", n_tracks=2, n_intervals=80, seed=0)


def test_refine_then_zip(synth, tmp_path):
    refined = []
    for name in ("track_1", "track_2"):
        out = run_refine(track=synth[name], out_path=tmp_path / "refined" / f"{name}.bed", bin_size=100)
        assert out.stats.num_records > 0
        assert out.meta_path.exists()
        refined.append(out.out_path)

    zipped = run_zip(tracks=refined, out_path=tmp_path / "zipped.tsv", interval_length=100)
    lines = zipped.out_path.read_text().splitlines()
    assert lines
    keys = []
    for line in lines:
        fields = line.split("\t")
        assert len(fields) == 5
        start, end = int(fields[1]), int(fields[2])
        assert end - start == 100 and start % 100 == 0
        keys.append((fields[0], start))
    assert keys == sorted(keys)
    assert json.loads(zipped.meta_path.read_text())["interval_length"] == 100


def test_correlation_and_top_k(synth, tmp_path):
    corr = run_correlation(
        first=synth["track_1"],
        second=synth["track_2"],
        out_dir=tmp_path / "corr",
        bin_sizes=[0, 500],
    )
    df = pd.read_csv(corr.table_path, sep="\t")
    assert set(df["chrom"]) == {"chr1", "chr2", "overall"}
    assert len(df) == 6
    overall = df[df["chrom"] == "overall"]["correlation"]
    assert all(-1.0 <= c <= 1.0 for c in overall)

    top = run_top_k_overlap(
        first=synth["track_1"],
        second=synth["track_2"],
        out_dir=tmp_path / "topk",
        top_k_fraction=0.1,
        bin_sizes=[500],
        filter_chroms=["chr1"],
    )
    assert top.table["chrom"].tolist() == ["chr1", "overall"]
    ratios = top.table["overlap_ratio"].tolist()
    assert all(math.isnan(r) or 0.0 <= r <= 1.0 for r in ratios)
    assert json.loads(top.meta_path.read_text())["filter_chroms"] == ["chr1"]

    same = run_top_k_overlap(
        first=synth["track_1"],
        second=synth["track_1"],
        out_dir=tmp_path / "topk_same",
        top_k_fraction=0.2,
        bin_sizes=[500],
    )
    assert same.table["overlap_ratio"].tolist() == [1.0, 1.0, 1.0]

    with pytest.raises(ValueError):
        run_top_k_overlap(
            first=synth["track_1"], second=synth["track_2"], out_dir=tmp_path / "x", top_k_fraction=0.1, bin_sizes=[0]
        )


def test_mixture(synth, tmp_path):
    out = run_mixture(
        weighted_tracks=[(1.0, synth["track_1"]), (-1.0, synth["track_1"])],
        out_path=tmp_path / "mixed.bedgraph",
        bin_size=200,
        bedgraph=True,
    )
    values = [float(line.split("\t")[3]) for line in out.out_path.read_text().splitlines()]
    assert values
    assert all(v == pytest.approx(0.0, abs=1e-9) for v in values)


def test_cli(tmp_path, write_lines, capsys):
    synth_dir = tmp_path / "synth"
    main(["synth", "--out_dir", str(synth_dir), "--n_intervals", "50"])
    t1, t2 = synth_dir / "track_1.bed", synth_dir / "track_2.bed"
    assert t1.exists() and t2.exists()

    main(["refine", str(t1), str(tmp_path / "r1.bed"), "--bin", "100", "--binarize", "--unique"])
    main(["refine", str(t2), str(tmp_path / "r2.bed"), "--bin", "100", "--chroms", "chr1"])
    assert "number of duplicate lines" in capsys.readouterr().out

    paths = write_lines("paths.txt", f"{tmp_path / 'r1.bed'}\n{tmp_path / 'r2.bed'}\n")
    main(["zip", str(paths), str(tmp_path / "zipped.tsv"), "--interval-length", "100"])
    assert (tmp_path / "zipped.tsv").exists()

    main(["correlate", "--first", str(t1), "--second", str(t2), "--out_dir", str(tmp_path / "c"), "--bin", "0", "100"])
    assert (tmp_path / "c" / "correlations.tsv").exists()

    weights = write_lines("weights.txt", f"0.5 {t1}\n0.5 {t2}\n")
    main(["mix", str(weights), str(tmp_path / "mixed.bed"), "--bin", "100", "--default-human-chrom"])
    assert (tmp_path / "mixed.bed").exists()

    with pytest.raises(SystemExit) as exc:
        main(["zip", str(write_lines("one.txt", f"{t1}\n")), str(tmp_path / "bad.tsv"), "--interval-length", "100"])
    assert exc.value.code == 1
    assert not (tmp_path / "bad.tsv").exists()

    main(["table", str(tmp_path / "table.tsv"), str(t1), str(t2), "--bin", "500"])
    assert (tmp_path / "table.tsv").exists()


def test_binned_table(write_lines, tmp_path):
    a = write_lines("a.bed", "chr1\t0\t15\tr\t2\nchr2\t0\t5\tr\t1\n")
    b = write_lines("b.bedgraph", "chr1\t10\t20\t4\n")
    out = run_binned_table(tracks=[a, b], out_path=tmp_path / "table.tsv", bin_size=10)
    df = pd.read_csv(out.out_path, sep="\t")
    assert list(df.columns) == ["chrom", "start", "end", "value_1", "value_2"]
    assert df[["chrom", "start", "end"]].values.tolist() == [["chr1", 0, 10], ["chr1", 10, 20], ["chr2", 0, 10]]
    assert df["value_1"].tolist() == [2.0, 2.0, 1.0]
    assert df["value_2"].isna().tolist() == [True, False, True]
    assert df["value_2"].iloc[1] == 4.0
    assert json.loads(out.meta_path.read_text())["num_rows"] == 3
