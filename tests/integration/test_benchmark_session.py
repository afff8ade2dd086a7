"""
Integration tests for a full benchmark session with hyperfine mocked out.

The session is run end to end: matrix generation, command rendering, hyperfine
invocation (a fake that writes JSON exports), aggregation and the CSV report.
"""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import pandas as pd

from speed_levels.core.modules.errors import (
    InvalidReportError, OutputExistsError, RunnerUnavailableError, UnknownEncoderError
)
from speed_levels.core.modules.processing.benchmark_session import BenchmarkSession, run_benchmark
from speed_levels.core.modules.results.aggregator import AggregateRow
from speed_levels.core.modules.results.report_writer import REPORT_COLUMNS, write_report
from speed_levels.core.modules.settings import BenchSettings
from tests.helpers import FakeHyperfine, command_names, fixed_probe

POPEN = 'speed_levels.core.modules.processing.hyperfine_runner.subprocess.Popen'
WHICH = 'speed_levels.core.modules.processing.hyperfine_runner.shutil.which'


class SessionTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.outdir = Path(self.temp_dir.name) / "Encoded"
        self.clip = Path(self.temp_dir.name) / "clip.y4m"
        self.other_clip = Path(self.temp_dir.name) / "park.y4m"
        which = patch(WHICH, return_value="/usr/bin/hyperfine")
        which.start()
        self.addCleanup(which.stop)

    def tearDown(self):
        self.temp_dir.cleanup()

    def settings(self, encoders=("aomenc",), inputs=None, **kwargs):
        inputs = [self.clip] if inputs is None else inputs
        return BenchSettings(encoders=encoders, inputs=inputs, tag="box", outdir=self.outdir,
                             **kwargs)

    def run_session(self, settings, fake=None, version="3.8.0"):
        fake = fake or FakeHyperfine()
        with patch(POPEN, side_effect=fake):
            summary = run_benchmark(settings, probe=fixed_probe(version))
        return summary, fake


class TestBenchmarkSession(SessionTestCase):
    """Test complete runs."""

    def test_single_encoder_single_input(self):
        summary, fake = self.run_session(self.settings())

        self.assertEqual(len(fake.calls), 1)
        self.assertEqual(len(command_names(fake.calls[0])), 9)
        self.assertEqual(len(summary.rows), 9)
        self.assertEqual(summary.report_path, self.outdir / "box-speed-levels.csv")

        frame = pd.read_csv(summary.report_path)
        self.assertEqual(list(frame.columns), REPORT_COLUMNS)
        self.assertEqual(list(frame["speed"]), list(range(9)))
        self.assertEqual(set(frame["encoder"]), {"aom"})
        self.assertEqual(set(frame["tag"]), {"box"})
        self.assertEqual(set(frame["input"]), {str(self.clip)})
        self.assertTrue((frame["runs"] == 2).all())

    def test_hyperfine_exports_kept_in_outdir(self):
        summary, fake = self.run_session(self.settings())

        argv = fake.calls[0]
        export = Path(argv[argv.index("--export-json") + 1])
        self.assertEqual(export, self.outdir / "hyperfine" / "box-aom-3.8.0-speed-levels-clip-l10.json")
        self.assertTrue(export.exists())

    def test_batches_per_encoder_and_input(self):
        summary, fake = self.run_session(
            self.settings(encoders=("aomenc", "rav1e"), inputs=[self.clip, self.other_clip]))

        self.assertEqual(len(fake.calls), 4)
        self.assertEqual(len(summary.rows), 2 * 9 + 2 * 11)
        self.assertEqual(summary.jobs_planned, 40)

    def test_no_batch_runs_hyperfine_per_job(self):
        summary, fake = self.run_session(self.settings(batch=False))

        self.assertEqual(len(fake.calls), 9)
        self.assertEqual(len(summary.rows), 9)
        for argv in fake.calls:
            self.assertEqual(len(command_names(argv)), 1)

    def test_concurrent_workers(self):
        summary, fake = self.run_session(
            self.settings(encoders=("aomenc", "SvtAv1EncApp"), inputs=[self.clip, self.other_clip],
                          workers=3, threads=1))

        self.assertEqual(len(fake.calls), 4)
        self.assertEqual(len(summary.rows), 36)
        self.assertEqual(len({row.key for row in summary.rows}), 36)

    def test_empty_inputs_writes_header_only(self):
        summary, fake = self.run_session(self.settings(inputs=[]))

        self.assertEqual(fake.calls, [])
        self.assertEqual(summary.rows, [])
        lines = summary.report_path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(lines, [",".join(REPORT_COLUMNS)])

    def test_failed_encoder_run_is_excluded(self):
        failing = "aom-3.8.0-s4-clip"
        summary, fake = self.run_session(self.settings(), FakeHyperfine(failing=[failing]))

        self.assertEqual(len(summary.rows), 8)
        self.assertNotIn(4, [row.speed for row in summary.rows])
        self.assertEqual([job.label for job, _ in summary.failed], [failing])

    def test_unparseable_result_is_dropped(self):
        broken = "aom-3.8.0-s2-clip"
        fake = FakeHyperfine(entries={broken: {"mean": None}})
        summary, _ = self.run_session(self.settings(), fake)

        self.assertEqual(len(summary.rows), 8)
        self.assertEqual(summary.dropped, [broken])

    def test_duplicate_encoders_keep_first_rows(self):
        summary, fake = self.run_session(self.settings(encoders=("aomenc", "aomenc")))

        self.assertEqual(summary.jobs_planned, 18)
        self.assertEqual(len(summary.rows), 9)
        self.assertEqual(summary.duplicates, 9)
        self.assertEqual(len(pd.read_csv(summary.report_path)), 9)

    def test_inputs_sharing_a_name_stay_apart(self):
        first = Path(self.temp_dir.name) / "a" / "clip.y4m"
        second = Path(self.temp_dir.name) / "b" / "clip.y4m"
        summary, fake = self.run_session(self.settings(inputs=[first, second], workers=2))

        exports = {argv[argv.index("--export-json") + 1] for argv in fake.calls}
        self.assertEqual(len(exports), 2)
        self.assertEqual(len(list((self.outdir / "hyperfine").glob("*.json"))), 2)
        self.assertEqual(len(summary.rows), 18)
        self.assertEqual(summary.duplicates, 0)
        frame = pd.read_csv(summary.report_path)
        self.assertEqual(set(frame["input"]), {str(first), str(second)})


class TestSessionFailures(SessionTestCase):
    """Test fatal conditions."""

    def test_unknown_encoder_starts_nothing(self):
        fake = FakeHyperfine()
        with patch(POPEN, side_effect=fake):
            with self.assertRaises(UnknownEncoderError):
                run_benchmark(self.settings(encoders=("aomenc", "/usr/bin/x265")),
                              probe=fixed_probe())

        self.assertEqual(fake.calls, [])
        self.assertFalse(self.settings().report_path.exists())

    def test_missing_hyperfine(self):
        fake = FakeHyperfine()
        with patch(WHICH, return_value=None), patch(POPEN, side_effect=fake):
            with self.assertRaises(RunnerUnavailableError):
                run_benchmark(self.settings(), probe=fixed_probe())

        self.assertEqual(fake.calls, [])
        self.assertFalse(self.settings().report_path.exists())

    def test_existing_report_is_not_replaced(self):
        report = self.settings().report_path
        report.parent.mkdir(parents=True)
        report.write_text("previous run", encoding="utf-8")

        fake = FakeHyperfine()
        with patch(POPEN, side_effect=fake):
            with self.assertRaises(OutputExistsError):
                run_benchmark(self.settings(), probe=fixed_probe())

        self.assertEqual(fake.calls, [])
        self.assertEqual(report.read_text(encoding="utf-8"), "previous run")

    def test_overwrite_replaces_report(self):
        report = self.settings().report_path
        report.parent.mkdir(parents=True)
        report.write_text("previous run", encoding="utf-8")

        summary, _ = self.run_session(self.settings(overwrite=True))

        self.assertEqual(len(pd.read_csv(report)), 9)


class TestResume(SessionTestCase):
    """Test continuing from an existing report."""

    def seed_report(self, speeds, tag="box"):
        rows = [AggregateRow(tag, "aom", "3.8.0", str(self.clip), speed, 5.0, 0.5, runs=2)
                for speed in speeds]
        write_report(rows, self.settings().report_path)

    def test_only_missing_jobs_run(self):
        self.seed_report([0, 1, 2])

        summary, fake = self.run_session(self.settings(resume=True))

        self.assertEqual(summary.jobs_skipped, 3)
        self.assertEqual(len(command_names(fake.calls[0])), 6)
        self.assertEqual([row.speed for row in summary.rows], list(range(9)))
        self.assertEqual(summary.rows[0].mean, 5.0)

    def test_complete_report_runs_nothing(self):
        self.seed_report(range(9))

        summary, fake = self.run_session(self.settings(resume=True))

        self.assertEqual(fake.calls, [])
        self.assertEqual(len(summary.rows), 9)

    def test_rows_from_other_tags_are_not_reused(self):
        self.seed_report([0, 1, 2], tag="other-host")

        summary, fake = self.run_session(self.settings(resume=True))

        self.assertEqual(summary.jobs_skipped, 0)
        self.assertEqual(len(command_names(fake.calls[0])), 9)

    def test_empty_report_is_rejected(self):
        report = self.settings().report_path
        report.parent.mkdir(parents=True)
        report.write_bytes(b"")

        fake = FakeHyperfine()
        with patch(POPEN, side_effect=fake):
            with self.assertRaises(InvalidReportError):
                run_benchmark(self.settings(resume=True), probe=fixed_probe())

        self.assertEqual(fake.calls, [])

    def test_plan_without_running(self):
        self.seed_report([0, 1])
        session = BenchmarkSession(self.settings(resume=True), probe=fixed_probe())
        session._prepare_output()

        self.assertEqual([job.speed for job in session.plan()], list(range(2, 9)))


if __name__ == '__main__':
    unittest.main()
