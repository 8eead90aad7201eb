import pytest

from deck_export.services.progress import ExportProgress, ProgressRecorder, ProgressReporter


def test_percentage_is_rounded():
    assert ExportProgress(current=1, total=3, stage="rendering", message="").percentage == 33
    assert ExportProgress(current=3, total=3, stage="finalizing", message="").percentage == 100


def test_invalid_snapshots_rejected():
    with pytest.raises(ValueError):
        ExportProgress(current=4, total=3, stage="rendering", message="")
    with pytest.raises(ValueError):
        ExportProgress(current=0, total=3, stage="uploading", message="")


def test_rendering_steps_never_reach_total():
    recorder = ProgressRecorder()
    reporter = ProgressReporter(recorder, total=2)
    reporter.preparing("start")
    reporter.rendering(1, "one")
    reporter.rendering(5, "clamped")
    reporter.finalizing("done")

    assert [p.current for p in recorder.snapshots] == [0, 1, 1, 2]
    assert recorder.last.to_dict()["percentage"] == 100


def test_nothing_reported_after_completion():
    reporter = ProgressReporter(ProgressRecorder(), total=1)
    reporter.preparing("start")
    reporter.finalizing("done")
    with pytest.raises(RuntimeError):
        reporter.rendering(1, "late")


def test_no_callback_is_a_no_op():
    reporter = ProgressReporter(None, total=3)
    reporter.preparing("start")
    reporter.rendering(1, "one")
    reporter.finalizing("done")
