from benchmark import run_benchmark


def test_run_benchmark_small(capsys):
    results = run_benchmark([(16, 12)], [1, 3])
    assert [(w, h, n) for w, h, n, _ in results] == [(16, 12, 1), (16, 12, 3)]
    assert all(elapsed >= 0 for *_, elapsed in results)
    assert "16x12, 3 workers" in capsys.readouterr().out
