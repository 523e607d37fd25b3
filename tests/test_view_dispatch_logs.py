import json

from view_dispatch_logs import DispatchLogViewer, main


def write_lines(path, entries):
    path.write_text("\n".join(json.dumps(e) for e in entries) + "\n", encoding="utf-8")


DISPATCH = [
    {"timestamp": "2024-05-01T10:00:00", "conversation_id": "c1", "actor_id": "u1", "outcome": "replied", "intent": "joke"},
    {"timestamp": "2024-05-01T10:01:00", "conversation_id": "c1", "actor_id": "u2", "outcome": "suppressed", "reason": "spam:too_short"},
    {"timestamp": "2024-05-01T10:02:00", "conversation_id": "c2", "actor_id": "u3", "outcome": "moderated", "reason": "Excessive caps", "action": "warned"},
]

COMPLETIONS = [
    {"timestamp": "2024-05-01T10:00:00", "succeeded": True, "attempts": [
        {"provider_id": "groq", "outcome": "timeout", "latency": 12.0},
        {"provider_id": "openrouter", "outcome": "success", "latency": 2.0},
    ]},
    {"timestamp": "2024-05-01T10:05:00", "succeeded": True, "attempts": [
        {"provider_id": "groq", "outcome": "success", "latency": 1.0},
    ]},
]


def test_summaries(tmp_path):
    write_lines(tmp_path / "dispatch.jsonl", DISPATCH)
    write_lines(tmp_path / "completions.jsonl", COMPLETIONS)
    viewer = DispatchLogViewer(str(tmp_path))

    entries = viewer.load_entries("dispatch.jsonl")
    summary = viewer.summarize_dispatch(entries)
    providers = viewer.summarize_providers(viewer.load_entries("completions.jsonl"))

    assert summary["total"] == 3
    assert summary["conversations"] == 2
    assert summary["outcomes"]["replied"] == 1
    assert providers["groq"]["attempts"] == 2
    assert providers["groq"]["mean_latency"] == 6.5
    assert providers["openrouter"]["outcomes"]["success"] == 1


def test_filters(tmp_path):
    write_lines(tmp_path / "dispatch.jsonl", DISPATCH)
    viewer = DispatchLogViewer(str(tmp_path))
    entries = viewer.load_entries("dispatch.jsonl")

    assert len(viewer.filter_entries(entries, outcome="suppressed")) == 1
    assert len(viewer.filter_entries(entries, reason="spam")) == 1
    assert len(viewer.filter_entries(entries, conversation="c1")) == 2


def test_main_exports_csv(tmp_path, capsys):
    write_lines(tmp_path / "dispatch.jsonl", DISPATCH)
    export = tmp_path / "out.csv"

    main(["--log-dir", str(tmp_path), "--outcome", "moderated", "--export", str(export)])

    lines = export.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("timestamp,conversation_id")
    assert len(lines) == 2
    assert "Dispatch Summary" in capsys.readouterr().out


def test_skips_corrupt_lines(tmp_path):
    (tmp_path / "dispatch.jsonl").write_text('{"outcome": "replied"}\nnot json\n', encoding="utf-8")

    entries = DispatchLogViewer(str(tmp_path)).load_entries("dispatch.jsonl")

    assert entries == [{"outcome": "replied"}]
