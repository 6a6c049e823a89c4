# coding: utf-8

__version__ = '0.1.0'

from ._common import Log, LogParser, init_parser, load_parser_script
from ._common import (ParserDefinitionError, LogParseFailure, NoMatch,
                      FieldTypeError, PriorityError, TagsError,
                      AttributesError)
from .grammar import LogLineGrammar, default_rules, parse_log_line
from .formatter import format_log
