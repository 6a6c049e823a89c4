import bz2
import gzip
import json
import logging
import os
import unittest
from unittest import mock

from click.testing import CliRunner

from semistruct.__main__ import main

EXAMPLE_PARSER = os.path.join(os.path.dirname(__file__), "..",
                              "example", "wide_whitespace", "parser.py")

INPUT = ("!< 2 [cl7323:featstore:sess_fun] { ONE=two DOS=\"wah=hh-77\" } >!\n"
         "no line to parse at all\n"
         "\n"
         "!< 0 [cl2] { UNSTRUCT_MSG=\"some random debugging spam\" } >!\n")


class TestCLI(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

    def test_json(self):
        result = self.runner.invoke(main, ["-t", "json", "--on-failure", "skip"],
                                    input=INPUT)
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0]) == {
            "priority": 2,
            "tags": ["cl7323", "featstore", "sess_fun"],
            "attrs": {"ONE": "two", "DOS": "wah=hh-77"}}
        assert json.loads(lines[1])["priority"] == 0

    def test_canonical(self):
        result = self.runner.invoke(main, ["-t", "canonical"],
                                    input="!<2[a]{K=v}>!\n")
        assert result.exit_code == 0, result.output
        assert result.output == "!< 2 [a] { K=v } >!\n"

    def test_failure_raise(self):
        result = self.runner.invoke(main, [], input=INPUT)
        assert result.exit_code != 0
        assert "log line format mismatch" in result.output

    def test_quarantine(self):
        with self.runner.isolated_filesystem():
            with gzip.open("input.log.gz", "wt") as f:
                f.write(INPUT)
            result = self.runner.invoke(
                main, ["-t", "json", "-o", "out.log",
                       "--on-failure", "quarantine",
                       "--quarantine", "rejected.log", "input.log.gz"])
            assert result.exit_code == 0, result.output
            with open("out.log") as f:
                assert len(f.readlines()) == 2
            with open("rejected.log") as f:
                assert f.read() == "no line to parse at all\n"

    def test_quarantine_without_file(self):
        result = self.runner.invoke(main, ["--on-failure", "quarantine"],
                                    input=INPUT)
        assert result.exit_code != 0

    def test_parser_script(self):
        # gzip input is split on "\n" only, so "\r" stays inside the line
        with self.runner.isolated_filesystem():
            with gzip.open("input.log.gz", "wb") as f:
                f.write(b"!< 2\r[a:b]\r{ K=v } >!\n")
            result = self.runner.invoke(main, ["-t", "json", "input.log.gz"])
            assert result.exit_code != 0

            result = self.runner.invoke(
                main, ["-t", "json", "-p", EXAMPLE_PARSER, "input.log.gz"])
            assert result.exit_code == 0, result.output
            assert json.loads(result.output) == {
                "priority": 2, "tags": ["a", "b"], "attrs": {"K": "v"}}

    def test_show_input(self):
        result = self.runner.invoke(main, ["-i", "-t", "canonical"],
                                    input="!<2[a]>!\n\n!< 3 { K=v } >!\n")
        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "!<2[a]>!", "!< 2 [a] >!",
            "!< 3 { K=v } >!", "!< 3 { K=v } >!"]

    def test_bz2(self):
        with self.runner.isolated_filesystem():
            with bz2.open("input.log.bz2", "wt") as f:
                f.write(INPUT)
            result = self.runner.invoke(
                main, ["-t", "canonical", "--on-failure", "skip",
                       "input.log.bz2"])
            assert result.exit_code == 0, result.output
            assert result.output.splitlines() == [
                '!< 2 [cl7323:featstore:sess_fun] { DOS="wah=hh-77" ONE=two } >!',
                '!< 0 [cl2] { UNSTRUCT_MSG="some random debugging spam" } >!']

    def test_verbose(self):
        root = logging.getLogger()
        self.addCleanup(root.setLevel, root.level)
        self.addCleanup(setattr, root, "handlers", list(root.handlers))
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(
                main, ["-v", "-t", "json", "-o", "out.log",
                       "--on-failure", "skip"], input=INPUT)
            assert result.exit_code == 0, result.output
            with open("out.log") as f:
                assert len(f.readlines()) == 2

    def test_output_closed_on_quarantine_error(self):
        opened = []
        builtin_open = open

        def tracking_open(*args, **kwargs):
            f = builtin_open(*args, **kwargs)
            opened.append(f)
            return f

        with self.runner.isolated_filesystem():
            with mock.patch("semistruct.__main__.open", tracking_open,
                            create=True):
                result = self.runner.invoke(
                    main, ["-o", "out.log", "--on-failure", "quarantine",
                           "--quarantine", "missing/rejected.log"],
                    input=INPUT)
            assert result.exit_code != 0
            assert isinstance(result.exception, FileNotFoundError)
            assert len(opened) == 1
            assert opened[0].closed
