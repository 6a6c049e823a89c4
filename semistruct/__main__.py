#!/usr/bin/env python

import contextlib
import logging
import sys

import click

_logger = logging.getLogger(__name__)


def text_postprocess(line):
    return line.rstrip("\r\n")


def bin_postprocess(line, encoding="utf-8"):
    return line.decode(encoding).rstrip("\r\n")


def iter_lines(files, encoding="utf-8"):
    if len(files) == 0:
        for line in sys.stdin:
            yield text_postprocess(line)
    else:
        for fp in files:
            _logger.debug("reading %s", fp)
            if fp.endswith(".bz2"):
                import bz2
                with bz2.open(fp, 'rt', encoding=encoding) as f:
                    for line in f:
                        yield text_postprocess(line)
            elif fp.endswith(".gz"):
                import gzip
                with gzip.open(fp, 'r') as f:
                    for line in f:
                        yield bin_postprocess(line, encoding=encoding)
            else:
                with open(fp, 'rt', encoding=encoding) as f:
                    for line in f:
                        yield text_postprocess(line)


@click.command()
@click.argument("files", nargs=-1)
@click.option("--parser", "-p", default=None,
              help="filename of parser script")
@click.option("--encoding", default="utf-8",
              help="encoding to load input data")
@click.option("--output", "-o", default=None,
              help="output filename")
@click.option("--type", "-t", "format_type", default="object",
              type=click.Choice(["object", "json", "canonical"]),
              help="output format type")
@click.option("--show-input", "-i", "show_input", is_flag=True,
              help="additionally show the input string line as is")
@click.option("--on-failure", "on_failure", default="raise",
              type=click.Choice(["raise", "skip", "quarantine"]),
              help="action for lines failed to parse")
@click.option("--quarantine", "quarantine", default=None,
              help="output filename for lines failed to parse")
@click.option("--verbose", "-v", is_flag=True,
              help="verbose output to stderr")
def main(files, parser, encoding, output, format_type, show_input,
         on_failure, quarantine, verbose):
    """Parse semi-structured log lines given in FILES (or stdin if FILES not given)."""

    if verbose:
        logging.basicConfig(level=logging.DEBUG, stream=sys.stderr)
    if on_failure == "quarantine" and quarantine is None:
        raise click.BadParameter("--quarantine is required",
                                 param_hint="--on-failure")

    from semistruct._common import init_parser, load_parser_script
    from semistruct._common import LogParseFailure
    from semistruct.formatter import format_parsed_line
    if parser:
        lp = load_parser_script(parser)
    else:
        lp = init_parser()

    with contextlib.ExitStack() as stack:
        if output:
            f_output = stack.enter_context(open(output, "w"))
        else:
            f_output = sys.stdout
        if on_failure == "quarantine":
            f_quarantine = stack.enter_context(open(quarantine, "w"))

            def policy(lineno, line, exc):
                f_quarantine.write(line + "\n")
        else:
            policy = on_failure

        def _lines():
            for line in iter_lines(files, encoding=encoding):
                if line != "" and show_input:
                    f_output.write(line + "\n")
                yield line

        try:
            for log in lp.process_lines(_lines(), on_failure=policy):
                f_output.write(format_parsed_line(log, format_type) + "\n")
        except LogParseFailure as exc:
            raise click.ClickException(str(exc))


if __name__ == "__main__":
    main()
