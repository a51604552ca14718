"""Tests for the toolchain output classifier."""

import os

from arduino_panda.classifier import OutputClassifier
from arduino_panda.models import Diagnostic, ProgressEvent, Severity


class TestClassifyLine:
    def test_error_with_location(self):
        d = OutputClassifier().classify_line("foo.ino:12:4: error: expected ';'")
        assert d == Diagnostic(
            severity=Severity.ERROR,
            message="error: expected ';'",
            source_file="foo.ino",
            line=12,
            column=4,
        )

    def test_warning_with_location(self):
        d = OutputClassifier().classify_line(
            "/home/u/Blink/Blink.ino:3:7: warning: unused variable 'x' [-Wunused-variable]"
        )
        assert d.severity is Severity.WARNING
        assert d.source_file == "/home/u/Blink/Blink.ino"
        assert d.line == 3
        assert d.column == 7
        assert d.message == "warning: unused variable 'x' [-Wunused-variable]"

    def test_windows_path_keeps_drive_letter(self):
        d = OutputClassifier().classify_line(r"C:\Users\me\Blink.ino:5:1: error: 'foo' was not declared")
        assert d.source_file == r"C:\Users\me\Blink.ino"
        assert d.line == 5
        assert d.column == 1

    def test_fatal_error_is_error(self):
        d = OutputClassifier().classify_line("Blink.ino:1:10: fatal error: Servo.h: No such file or directory")
        assert d.severity is Severity.ERROR
        assert d.source_file == "Blink.ino"
        assert d.message.startswith("fatal error: Servo.h")

    def test_unlocated_error_is_message_only(self):
        d = OutputClassifier().classify_line("collect2: error: ld returned 1 exit status")
        assert d.severity is Severity.ERROR
        assert d.source_file is None
        assert d.line is None
        assert d.message == "collect2: error: ld returned 1 exit status"

    def test_unlocated_warning(self):
        d = OutputClassifier().classify_line("avrdude: warning: cannot set sck period")
        assert d.severity is Severity.WARNING
        assert d.source_file is None

    def test_plain_line_is_not_a_diagnostic(self):
        classifier = OutputClassifier()
        assert classifier.classify_line("Sketch uses 924 bytes (2%) of program storage space.") is None
        assert classifier.classify_line("In function 'void loop()':") is None
        assert classifier.classify_line("") is None

    def test_error_word_without_colon_is_ignored(self):
        assert OutputClassifier().classify_line("Error during build: exit status 1") is None


class TestDiagnosticsStream:
    def test_keeps_order_and_drops_noise(self):
        stderr = (
            "/tmp/Blink/Blink.ino: In function 'void loop()':\n"
            "/tmp/Blink/Blink.ino:4:3: warning: unused variable 'x'\n"
            "/tmp/Blink/Blink.ino:6:1: error: expected ';' before '}' token\n"
            "exit status 1\n"
        )
        found = OutputClassifier().diagnostics(stderr)
        assert [d.severity for d in found] == [Severity.WARNING, Severity.ERROR]
        assert [d.line for d in found] == [4, 6]


class TestClassifyProgress:
    def test_compiling(self):
        event = OutputClassifier().classify_progress("Compiling sketch...")
        assert event == ProgressEvent(stage="Compiling", increment=30)

    def test_each_trigger(self):
        classifier = OutputClassifier()
        assert classifier.classify_progress("Linking everything together...").increment == 60
        assert classifier.classify_progress("Building core").increment == 80
        assert classifier.classify_progress("Uploading firmware").increment == 90

    def test_first_trigger_wins(self):
        event = OutputClassifier().classify_progress("Compiling and Linking")
        assert event.stage == "Compiling"

    def test_no_match(self):
        assert OutputClassifier().classify_progress("nothing relevant") is None

    def test_progress_stream(self):
        text = "Compiling sketch...\nUsing core\nLinking everything together...\n"
        stages = [e.stage for e in OutputClassifier().progress(text)]
        assert stages == ["Compiling", "Linking"]

    def test_diagnostic_and_progress_are_independent(self):
        line = "Compiling.ino:1:1: error: boom"
        classifier = OutputClassifier()
        assert classifier.classify_line(line).severity is Severity.ERROR
        assert classifier.classify_progress(line).stage == "Compiling"


class TestDiagnosticFormat:
    def test_relative_location(self, tmp_path):
        d = Diagnostic(
            severity=Severity.ERROR, message="error: boom",
            source_file=str(tmp_path / "src" / "Blink.ino"), line=3, column=1,
        )
        assert d.format(relative_to=tmp_path) == f"[src{os.sep}Blink.ino:3] error: boom"

    def test_message_only(self):
        d = Diagnostic(severity=Severity.WARNING, message="avrdude: warning: slow")
        assert d.format() == "avrdude: warning: slow"
