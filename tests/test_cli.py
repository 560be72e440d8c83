import io
import json

from ccem.cli import build_parser, run
from conftest import assistant_record


class TestCli:
    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.format == "text"
        assert not args.cached
        assert not args.serve

    def test_cached_without_cache(self, make_engine):
        args = build_parser().parse_args(["--cached"])
        out = io.StringIO()
        assert run(args, make_engine(), out=out) == 1
        assert out.getvalue() == ""

    def test_full_pass_json_then_cached_line(self, make_engine, write_log):
        write_log("proj", "a.jsonl", [assistant_record()])
        engine = make_engine()

        out = io.StringIO()
        assert run(build_parser().parse_args(["--format", "json"]), engine, out=out) == 0
        data = json.loads(out.getvalue())
        assert data["periods"]["All Time"]["inputTokens"] == 1000

        out = io.StringIO()
        assert run(build_parser().parse_args(["--cached", "--line"]), engine, out=out) == 0
        assert out.getvalue().startswith(" Usage: ")
        assert "Total" in out.getvalue()

    def test_cached_heatmap(self, make_engine, write_log):
        write_log("proj", "a.jsonl", [assistant_record()])
        engine = make_engine()
        assert run(build_parser().parse_args([]), engine, out=io.StringIO()) == 0

        out = io.StringIO()
        assert run(build_parser().parse_args(["--cached", "--heatmap", "--months", "2"]), engine, out=out) == 0
        lines = out.getvalue().rstrip("\n").split("\n")
        assert lines[1].startswith("Mon  ")
        assert lines[-1].endswith("More")
