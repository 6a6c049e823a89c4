# coding: utf-8

"""semistruct.grammar defines the log line grammar.

A log line looks like::

    !< 2 [cl7323:featstore:sess_fun] { ONE=two DOS="wah=hh-77" } >!

The grammar is a list of :class:`Rule` objects.
Each rule renders one PEG rule definition for
`parsimonious <https://github.com/erikrose/parsimonious>`_,
and reduces its matched node into a typed value with :meth:`Rule.pick_value`.
:class:`LogLineGrammar` compiles the rules into one grammar
and reduces a parse tree into a :class:`~semistruct.Log`.
"""

import re
from abc import ABC, abstractmethod

from parsimonious.exceptions import BadGrammar, ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from . import _common

_ESCAPES = {"\t": r"\t", "\n": r"\n", "\r": r"\r", "\f": r"\f", "\v": r"\v"}


def _escape_members(chars):
    return "".join(_ESCAPES.get(c, re.escape(c)) for c in chars)


class CharClass:
    """Character set, matched once or repeated zero or more times.

    Args:
        members (str): Contents of a regular expression character set
            (without the enclosing brackets).
        repeat (bool, optional): If true, match zero or more characters.
            Otherwise match exactly one.
    """

    def __init__(self, members, repeat=True):
        self._members = members
        self._repeat = repeat
        self._pattern = "[" + members + "]" + ("*" if repeat else "")

    @classmethod
    def from_chars(cls, chars, repeat=True):
        """Generate CharClass from literal characters."""
        return cls(_escape_members(chars), repeat=repeat)

    @property
    def pattern(self):
        """str: Regular expression pattern of this character class."""
        return self._pattern

    @property
    def expression(self):
        """str: parsimonious regex term of this character class."""
        return '~r"' + self._pattern + '"'

    def test(self, string):
        """Test this class matches the whole input string or not.

        Returns:
            re.Match or None
        """
        return re.fullmatch(self._pattern, string)


_WORD = r"A-Za-z0-9_"
_SPECIAL = r"!@#:;$%^&*()+=?\\/><,.{}\[\]|'`"

DIGIT = CharClass(r"0-9", repeat=False)
WORD_HYPHEN = CharClass(_WORD + r"\-")
WORD_SPACE_PUNCT = CharClass(_WORD + r"\-~ \t" + _SPECIAL)
UPPER_ALNUM_UNDERSCORE = CharClass(r"A-Z0-9_")
KEY_HEAD = CharClass(r"A-Z0-9", repeat=False)
SPACE_TAB = CharClass.from_chars(" \t")


def get_tag(captures, name, default=None):
    """Get the value of the first capture named `name`."""
    for key, val in captures:
        if key == name:
            return val
    return default


def get_tags(captures, name):
    """Get the values of all captures named `name` in source order."""
    return [val for key, val in captures if key == name]


class Rule(ABC):
    """Base class of rules, components of the log line grammar.

    A rule is rendered as ``<name> = <expression>`` in the grammar.
    After matching, the rule reduces its node with :meth:`pick_value`,
    receiving the values of the named rules matched inside it
    as a list of (name, value) captures.

    Args:
        optional (bool, optional): Absence of this rule is a success.
            The rule then reduces an empty match.
        discard (bool, optional): This rule produces no value.
            Its text is consumed and dropped.
    """
    _name = "rule"

    def __init__(self, optional=False, discard=False):
        self._optional = optional
        self._discard = discard

    @property
    @abstractmethod
    def pattern(self):
        """str: parsimonious expression for this *Rule class*."""
        raise NotImplementedError

    @property
    def name(self):
        """str: Rule name, used as capture name and in the grammar text.
        Rule names cannot be duplicated in one :class:`LogLineGrammar`.
        """
        return self._name

    @property
    def optional(self):
        return self._optional

    @property
    def discard(self):
        return self._discard

    @property
    def expression(self):
        if self._optional:
            return "(" + self.pattern + ")?"
        else:
            return self.pattern

    def definition(self):
        return "{0} = {1}".format(self.name, self.expression)

    def pick_value(self, node, captures):
        """Reduce a matched node into the value of this rule.

        Args:
            node: parsimonious Node matched with this rule.
            captures (list of tuple): (name, value) of named rules
                matched inside this rule, in source order.

        Returns:
            Reduced value. If not specified, the matched text is returned as is.
        """
        return node.text


class OpenSentinel(Rule):
    """Opening marker :samp:`!<`."""
    _name = "open_sentinel"

    def __init__(self):
        super().__init__(discard=True)

    @property
    def pattern(self):
        return '"!<"'


class EndSentinel(Rule):
    """Ending marker :samp:`>!`."""
    _name = "end_sentinel"

    def __init__(self):
        super().__init__(discard=True)

    @property
    def pattern(self):
        return '">!"'


class SkipSpace(Rule):
    """Zero or more blank characters, consumed and dropped.

    Args:
        chars (str, optional): Characters to skip.
            Defaults to space and tab (line feeds are not skipped).
    """
    _name = "skip"

    def __init__(self, chars=None):
        super().__init__(discard=True)
        if chars is None:
            self._class = SPACE_TAB
        else:
            self._class = CharClass.from_chars(chars)

    @property
    def pattern(self):
        return self._class.expression


class Priority(Rule):
    """Log level priority, one digit from 0 to 9."""
    _name = "priority"

    @property
    def pattern(self):
        return DIGIT.expression

    def pick_value(self, node, captures):
        """Returns integer."""
        try:
            return int(node.text)
        except ValueError:
            raise _common.PriorityError(node.text)


class QuotedString(Rule):
    """String wrapped in double quotes.
    It may contain spaces, tabs and most symbols, but no double quote.
    """
    _name = "quoted_string"

    @property
    def pattern(self):
        return "'\"' {0} '\"'".format(WORD_SPACE_PUNCT.expression)

    def pick_value(self, node, captures):
        """Returns the string without quotes."""
        return node.text[1:-1]


class TagAtom(Rule):
    _name = "tag_atom"

    @property
    def pattern(self):
        return WORD_HYPHEN.expression


class TagList(Rule):
    """Tag atoms separated by a colon.

    A list consisting of one empty atom (i.e., :samp:`[]`) is an empty list.
    Empty atoms between colons are kept.
    """
    _name = "tag_list"

    def __init__(self, optional=True):
        super().__init__(optional=optional)

    @property
    def pattern(self):
        return '{0} (":" {0})*'.format(TagAtom._name)

    def pick_value(self, node, captures):
        """Returns list of str."""
        atoms = get_tags(captures, TagAtom._name)
        if atoms == [""]:
            return []
        return atoms


class Tags(Rule):
    """Bracketed tag list, e.g., :samp:`[cl2:filestore:notify]`."""
    _name = "tags"

    def __init__(self, optional=True):
        super().__init__(optional=optional)

    @property
    def pattern(self):
        return '"[" {0} "]"'.format(TagList._name)

    def pick_value(self, node, captures):
        """Returns list of str, empty if the tags are absent."""
        return list(get_tag(captures, TagList._name, []))


class AttrKey(Rule):
    """Attribute key in upper case alphabets, digits and underscores.
    It cannot start with an underscore.
    """
    _name = "attr_key"

    @property
    def pattern(self):
        return KEY_HEAD.expression + " " + UPPER_ALNUM_UNDERSCORE.expression


class AttrValue(Rule):
    """Attribute value, quoted or not.

    A quoted value is tried first, then an unquoted value
    with alphabets, digits, underscores and hyphens.
    """
    _name = "attr_value"

    @property
    def pattern(self):
        return "{0} / {1}".format(QuotedString._name, WORD_HYPHEN.expression)

    def pick_value(self, node, captures):
        """Returns str."""
        quoted = get_tag(captures, QuotedString._name)
        if quoted is not None:
            return quoted
        return node.text


class KvPair(Rule):
    _name = "kv_pair"

    @property
    def pattern(self):
        return '{0} "=" {1}'.format(AttrKey._name, AttrValue._name)

    def pick_value(self, node, captures):
        """Returns tuple of key and value."""
        return (get_tag(captures, AttrKey._name),
                get_tag(captures, AttrValue._name))


class KvPairs(Rule):
    """Key-value pairs separated by blanks.
    If a key appears twice, the later value is used.
    """
    _name = "kv_pairs"

    def __init__(self, optional=True):
        super().__init__(optional=optional)

    @property
    def pattern(self):
        return "{0} ({1} {0})*".format(KvPair._name, SkipSpace._name)

    def pick_value(self, node, captures):
        """Returns dict."""
        return dict(get_tags(captures, KvPair._name))


class Attrs(Rule):
    """Attribute block, e.g., :samp:`{ KEY=value KEY2="quoted value" }`."""
    _name = "attrs"

    def __init__(self, optional=True):
        super().__init__(optional=optional)

    @property
    def pattern(self):
        return '"{{" {1} {0} {1} "}}"'.format(KvPairs._name, SkipSpace._name)

    def pick_value(self, node, captures):
        """Returns dict, empty if the attribute block is absent."""
        return dict(get_tag(captures, KvPairs._name, {}))


class LogLine(Rule):
    """Whole log line: sentinels, priority, tags and attributes."""
    _name = "log_line"

    @property
    def pattern(self):
        names = [OpenSentinel._name, Priority._name, Tags._name,
                 Attrs._name, EndSentinel._name]
        return (" " + SkipSpace._name + " ").join(names)

    @staticmethod
    def _is_priority(val):
        return (isinstance(val, int) and not isinstance(val, bool)
                and 0 <= val <= 9)

    @staticmethod
    def _is_tags(val):
        return isinstance(val, list) and all(isinstance(t, str) for t in val)

    @staticmethod
    def _is_attrs(val):
        return isinstance(val, dict) and all(
            isinstance(k, str) and isinstance(v, str) for k, v in val.items())

    def pick_value(self, node, captures):
        """Returns :class:`~semistruct.Log`."""
        priority = get_tag(captures, Priority._name)
        if not self._is_priority(priority):
            raise _common.PriorityError(priority)
        tags = get_tag(captures, Tags._name)
        if not self._is_tags(tags):
            raise _common.TagsError(tags)
        attrs = get_tag(captures, Attrs._name)
        if not self._is_attrs(attrs):
            raise _common.AttributesError(attrs)
        return _common.Log(priority, tags, attrs)


def default_rules():
    """Generate list of :class:`Rule` for the standard log line format.

    Returns:
        list of :class:`Rule`
    """
    return [LogLine(),
            OpenSentinel(),
            EndSentinel(),
            SkipSpace(),
            Priority(),
            Tags(),
            TagList(),
            TagAtom(),
            Attrs(),
            KvPairs(),
            KvPair(),
            AttrKey(),
            AttrValue(),
            QuotedString()]


class _RuleVisitor(NodeVisitor):
    unwrapped_exceptions = (_common.LogParseFailure,)

    def __init__(self, rules):
        self._rules = {rule.name: rule for rule in rules}

    def generic_visit(self, node, visited_children):
        captures = [cap for child in visited_children for cap in child]
        rule = self._rules.get(node.expr_name)
        if rule is None:
            # anonymous subexpression: pass captures through
            return captures
        if rule.discard:
            return []
        return [(rule.name, rule.pick_value(node, captures))]


class LogLineGrammar:
    """Grammar of semi-structured log lines.

    LogLineGrammar renders the given rules into one
    parsimonious grammar and compiles it once.
    The compiled grammar holds no state between calls,
    so one instance can be shared by threads.

    Args:
        rules (list of :class:`Rule`): grammar rules.
        start (str, optional): name of the rule matching a whole line.
    """

    def __init__(self, rules, start=LogLine._name):
        self._rules = list(rules)
        self._start = start
        self._duplication_check(self._rules)
        self._start_check(self._rules, start)

        self._definition = self.make_definition(self._rules, start)
        try:
            self._grammar = Grammar(self._definition)
        except (BadGrammar, ParseError, VisitationError) as exc:
            msg = "invalid grammar definition: {0}".format(exc)
            raise _common.ParserDefinitionError(msg) from exc
        self._visitor = _RuleVisitor(self._rules)

    @property
    def definition(self):
        """str: Rendered grammar text."""
        return self._definition

    @property
    def rules(self):
        return list(self._rules)

    @staticmethod
    def _duplication_check(rules):
        names = [rule.name for rule in rules]
        if len(names) > len(set(names)):
            msg = "Given rules include duplicated names"
            raise _common.ParserDefinitionError(msg)

    @staticmethod
    def _start_check(rules, start):
        if start not in [rule.name for rule in rules]:
            msg = "start rule {0} is not given".format(start)
            raise _common.ParserDefinitionError(msg)

    @staticmethod
    def make_definition(rules, start):
        # parsimonious uses the first rule as the default rule
        ordered = sorted(rules, key=lambda rule: rule.name != start)
        return "\n".join(rule.definition() for rule in ordered) + "\n"

    def _reduce(self, tree):
        captures = self._visitor.visit(tree)
        if len(captures) == 0:
            return None
        return captures[0][1]

    def parse(self, text):
        """Parse a whole log line.

        Args:
            text (str): A log line without line feed code.

        Returns:
            :class:`~semistruct.Log`

        Raises:
            :class:`~semistruct.NoMatch`: text does not follow the grammar.
            :class:`~semistruct.FieldTypeError`: a field is reduced
                into an unexpected type.
        """
        try:
            tree = self._grammar[self._start].parse(text)
        except ParseError as exc:
            if len(text) > 50:
                tmp_msg = text[:50]
            else:
                tmp_msg = text
            msg = "log line format mismatch: {0}".format(tmp_msg)
            raise _common.NoMatch(msg) from exc
        return self._reduce(tree)

    def parse_rule(self, name, text):
        """Parse a whole string with one rule and return its value.
        Useful for debugging a rule set.

        Returns:
            Reduced value of the rule (None for discarded rules).
        """
        try:
            expr = self._grammar[name]
        except KeyError:
            raise KeyError("no rule {0}".format(name))
        try:
            tree = expr.parse(text)
        except ParseError as exc:
            msg = "{0} mismatch: {1}".format(name, text)
            raise _common.NoMatch(msg) from exc
        return self._reduce(tree)


_default_grammar = LogLineGrammar(default_rules())


def default_grammar():
    """Get the shared :class:`LogLineGrammar` with :func:`default_rules`."""
    return _default_grammar


def parse_log_line(text):
    """Parse one log line with the default grammar.

    Example:
        >>> parse_log_line('!< 0 [cl2] { UNSTRUCT_MSG="some random debugging spam" } >!')
        Log(priority=0, tags=('cl2',), attrs=mappingproxy({'UNSTRUCT_MSG': 'some random debugging spam'}))

    Raises:
        :class:`~semistruct.LogParseFailure`
    """
    return _default_grammar.parse(text)
