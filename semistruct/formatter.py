# coding: utf-8

"""semistruct.formatter serializes :class:`~semistruct.Log` into log lines.

The canonical form puts single spaces between the parts,
omits empty tag and attribute blocks, sorts attributes by key,
and quotes values only when needed::

    !< 2 [cl7323:featstore:sess_fun] { DOS="wah=hh-77" ONE=two } >!

Parsing a canonical line gives back an equal :class:`~semistruct.Log`.
"""

import json
import re

from . import grammar

_key_regex = re.compile(grammar.KEY_HEAD.pattern
                        + grammar.UPPER_ALNUM_UNDERSCORE.pattern)


def format_value(value):
    """Format an attribute value, quoted if it includes
    characters other than alphabets, digits, underscores and hyphens.
    """
    if value != "" and grammar.WORD_HYPHEN.test(value):
        return value
    elif grammar.WORD_SPACE_PUNCT.test(value):
        return '"' + value + '"'
    else:
        raise ValueError("attribute value cannot be represented: "
                         "{0!r}".format(value))


def format_tags(tags):
    """Format tags in brackets. Returns empty string for no tags."""
    tags = list(tags)
    if len(tags) == 0:
        return ""
    if tags == [""]:
        # "[]" is parsed as no tags
        raise ValueError("a single empty tag cannot be represented")
    for tag in tags:
        if not grammar.WORD_HYPHEN.test(tag):
            raise ValueError("tag cannot be represented: {0!r}".format(tag))
    return "[" + ":".join(tags) + "]"


def format_attrs(attrs):
    """Format attributes in braces. Returns empty string for no attributes."""
    if len(attrs) == 0:
        return ""
    l_kv = []
    for key in sorted(attrs):
        if not _key_regex.fullmatch(key):
            raise ValueError("attribute key cannot be represented: "
                             "{0!r}".format(key))
        l_kv.append(key + "=" + format_value(attrs[key]))
    return "{ " + " ".join(l_kv) + " }"


def format_log(log):
    """Serialize a :class:`~semistruct.Log` into the canonical log line.

    Raises:
        ValueError: some field cannot be written in the log line format.
    """
    if not (isinstance(log.priority, int) and 0 <= log.priority <= 9):
        raise ValueError("invalid priority: {0!r}".format(log.priority))
    parts = ["!<", str(log.priority),
             format_tags(log.tags), format_attrs(log.attrs), ">!"]
    return " ".join(part for part in parts if part != "")


def format_parsed_line(log, format_type):
    if format_type == "object":
        return repr(log)
    elif format_type == "json":
        return json.dumps(log.as_dict())
    elif format_type == "canonical":
        return format_log(log)
    else:
        raise ValueError("invalid format type: {0}".format(format_type))
