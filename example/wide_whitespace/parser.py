#!/usr/bin/env python

# Log lines from a collector that folds long records:
# blanks between the parts may include line feed codes.

from semistruct import LogParser
from semistruct.grammar import *

rules = [rule for rule in default_rules() if rule.name != SkipSpace._name]
rules.append(SkipSpace(chars=" \t\r\n"))

parser = LogParser(LogLineGrammar(rules))
