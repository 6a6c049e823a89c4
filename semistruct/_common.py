# coding: utf-8

import logging
import types
from dataclasses import dataclass
from typing import Mapping, Tuple

_logger = logging.getLogger(__name__)

# keys in public
KEY_PRIORITY = "priority"
KEY_TAGS = "tags"
KEY_ATTRS = "attrs"

FAILURE_RAISE = "raise"
FAILURE_SKIP = "skip"


class ParserDefinitionError(Exception):
    """ParserDefinitionError is raised when the given rules
    are inappropriate (e.g., duplicated rule names or grammar syntax errors).
    """
    pass


class LogParseFailure(Exception):
    """LogParseFailure is raised when the input log line
    cannot be parsed into a :class:`Log`.

    If you want to pass such log lines,
    use try-except with this exception.
    """
    pass


class NoMatch(LogParseFailure):
    """The input text does not follow the log line grammar."""
    pass


class FieldTypeError(LogParseFailure):
    """A field of the log line is reduced into an unexpected value.
    Unreachable with the default rules;
    it indicates an inconsistent custom rule set.

    Attributes:
        field (str): name of the field.
        value: the unexpected value.
    """
    field = None

    def __init__(self, value):
        self.value = value
        msg = "unexpected {0} value: {1!r}".format(self.field, value)
        super().__init__(msg)


class PriorityError(FieldTypeError):
    field = KEY_PRIORITY


class TagsError(FieldTypeError):
    field = KEY_TAGS


class AttributesError(FieldTypeError):
    field = KEY_ATTRS


@dataclass(frozen=True)
class Log:
    """Parsed log line.

    Attributes:
        priority (int): log level priority from 0 to 9.
        tags (tuple of str): tags in source order.
        attrs (mapping): read-only attributes, str key to str value.
    """
    priority: int
    tags: Tuple[str, ...]
    attrs: Mapping[str, str]

    def __post_init__(self):
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "attrs",
                           types.MappingProxyType(dict(self.attrs)))

    def __hash__(self):
        return hash((self.priority, self.tags, frozenset(self.attrs.items())))

    def as_dict(self):
        """Returns:
            dict: plain (mutable) copy of the fields.
        """
        return {KEY_PRIORITY: self.priority,
                KEY_TAGS: list(self.tags),
                KEY_ATTRS: dict(self.attrs)}


class LogParser:
    """Log parser object.

    LogParser applies one :class:`~grammar.LogLineGrammar`
    to log lines, usually read from files.
    Lines that fail to parse are handled by
    the failure policy given to :meth:`process_lines`.

    Example:
        >>> parser = semistruct.init_parser()
        >>> log = parser.process_line("!< 2 [cl7323:featstore] { ONE=two } >!\\n")
        >>> log.priority
        2
        >>> log.tags
        ('cl7323', 'featstore')
        >>> dict(log.attrs)
        {'ONE': 'two'}

    Args:
        grammar (:obj:`~grammar.LogLineGrammar`, optional):
            grammar to use. If not given, use the default grammar.
    """

    def __init__(self, grammar=None):
        from .grammar import LogLineGrammar, default_grammar
        if grammar is None:
            self.grammar = default_grammar()
        elif isinstance(grammar, LogLineGrammar):
            self.grammar = grammar
        else:
            raise TypeError("grammar must be a LogLineGrammar")

    def process_line(self, line):
        """Parse a log line.

        Args:
            line (str): A log line. Line feed code will be removed.

        Returns:
            :class:`Log`, or None if the line is empty.

        Raises:
            :class:`LogParseFailure`
        """
        line = line.rstrip("\r\n")
        if line == "":
            return None
        return self.grammar.parse(line)

    def process_lines(self, lines, on_failure=FAILURE_RAISE):
        """Parse log lines.

        Args:
            lines (iterable of str): log lines.
            on_failure (str or callable, optional): failure policy.
                "raise" to raise :class:`LogParseFailure`,
                "skip" to drop the failed lines,
                or a callable receiving (lineno, line, exception)
                to quarantine or forward the failed lines.

        Returns:
            generator of :class:`Log`
        """
        if on_failure not in (FAILURE_RAISE, FAILURE_SKIP) \
                and not callable(on_failure):
            raise ValueError("invalid on_failure: {0}".format(on_failure))
        return self._iter_logs(lines, on_failure)

    def _iter_logs(self, lines, on_failure):
        for lineno, line in enumerate(lines, 1):
            try:
                log = self.process_line(line)
            except LogParseFailure as exc:
                if on_failure == FAILURE_RAISE:
                    raise
                _logger.debug("line %d rejected: %s", lineno, exc)
                if on_failure != FAILURE_SKIP:
                    on_failure(lineno, line, exc)
                continue
            if log is not None:
                yield log


def init_parser(grammar=None):
    """Generate :class:`LogParser` object.

    Args:
        grammar (:class:`~grammar.LogLineGrammar`, optional):
            If not given, use the default grammar.
    """
    return LogParser(grammar)


def load_parser_script(fp):
    """Load external python script that gives a parser.
    The script defines a :class:`LogParser`
    (or :class:`~grammar.LogLineGrammar`) as variable "parser".
    See example/ for the sample scripts.

    Args:
        fp (str): file path of external python script.

    Returns:
        :class:`LogParser`
    """
    import os.path
    from importlib import util
    from .grammar import LogLineGrammar

    libname = os.path.splitext(os.path.basename(fp))[0]
    spec = util.spec_from_file_location(libname, fp)
    if spec is None:
        raise ParserDefinitionError("cannot load parser script {0}".format(fp))
    script_mod = util.module_from_spec(spec)
    spec.loader.exec_module(script_mod)

    try:
        parser = script_mod.parser
    except AttributeError:
        msg = "parser script {0} has no variable parser".format(fp)
        raise ParserDefinitionError(msg)
    if isinstance(parser, LogLineGrammar):
        parser = LogParser(parser)
    if not isinstance(parser, LogParser):
        msg = "parser in {0} is not a LogParser".format(fp)
        raise ParserDefinitionError(msg)
    return parser
