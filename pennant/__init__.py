#!/usr/bin/env python3

"A getopt-style command-line option parser.  Raise a Pennant!"
__version__ = "0.1.0"


# please leave this copyright notice in binary distributions.
license = """
pennant/__init__.py
part of the Pennant software package
Copyright 2023 by Larry Hastings
All rights reserved.

Permission is hereby granted, free of charge, to any person obtaining a
copy of this software and associated documentation files (the "Software"),
to deal in the Software without restriction, including without limitation
the rights to use, copy, modify, merge, publish, distribute, sublicense,
and/or sell copies of the Software, and to permit persons to whom the
Software is furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included
in all copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND,
EXPRESS OR IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF
MERCHANTABILITY, FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT.
IN NO EVENT SHALL THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM,
DAMAGES OR OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT,
TORT OR OTHERWISE, ARISING FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE
OR THE USE OR OTHER DEALINGS IN THE SOFTWARE.
"""


import big.all as big
from big.itertools import PushbackIterator
from collections.abc import Mapping, Sequence
import enum
import inspect
import json
import os.path
import re
import sys
import xml.etree.ElementTree as ET

from . import text


class PennantBaseException(Exception):
    pass

class RuleDefinitionError(PennantBaseException):
    """
    Raised when a rule specification is invalid:
    a blank flag, a flag defined more than once,
    or a malformed parameter type marker.
    """
    pass


class ParseError(PennantBaseException):
    """
    Raised when Pennant processes an invalid command-line.

    usage is the usage message for the rules in effect
    when the error was raised.
    """
    def __init__(self, message, usage=None):
        super().__init__(message)
        self.usage = usage


class UsageInputError(PennantBaseException):
    """
    Raised when the Pennant API is called with
    malformed arguments.
    """
    pass


class parameter_mode(enum.Enum):
    none = 0
    required = 1
    optional = 2

class value_type(enum.Enum):
    flag = 0
    string = 1
    word = 2
    integer = 3
    numeric = 4


# type marker -> (parameter mode, value type)
type_markers = {
    '=s': (parameter_mode.required, value_type.string),
    '-s': (parameter_mode.optional, value_type.string),
    '=w': (parameter_mode.required, value_type.word),
    '-w': (parameter_mode.optional, value_type.word),
    '=i': (parameter_mode.required, value_type.integer),
    '-i': (parameter_mode.optional, value_type.integer),
    '=#': (parameter_mode.required, value_type.numeric),
    }

placeholders = {
    value_type.string: 'string',
    value_type.word: 'word',
    value_type.integer: 'integer',
    value_type.numeric: 'integer',
    }


def dash(flag):
    """
    Returns flag the way you'd type it:
    one dash for a single letter, two otherwise.
    """
    assert flag and isinstance(flag, str)
    if len(flag) == 1:
        return "-" + flag
    return "--" + flag


class Rule:
    """
    One compiled option.

    name is the canonical name, the key the parsed
    value is stored under.  aliases is every name
    that resolves to this rule, canonical name first.
    """
    def __init__(self, name, aliases, mode=parameter_mode.none, type=value_type.flag, help='', *, freeform=False):
        self.name = name
        self.aliases = list(aliases)
        self.mode = mode
        self.type = type
        self.help = help
        self.freeform = freeform

    @property
    def takes_parameter(self):
        return self.mode != parameter_mode.none

    def __repr__(self):
        freeform = " freeform" if self.freeform else ""
        return f"<Rule {'|'.join(self.aliases)} mode={self.mode.name} type={self.type.name}{freeform}>"


def _blank_flag(key):
    return RuleDefinitionError(f'Blank flag not allowed in rule "{key}": every flag needs a name, and a blank flag has none.')

def _check_flag(flag, key):
    if not flag:
        raise _blank_flag(key)
    if flag.startswith('-'):
        raise RuleDefinitionError(f'Flag "{flag}" in rule "{key}" must not start with a dash.')
    for c in flag:
        if c.isspace() or (c in '=|'):
            raise RuleDefinitionError(f'Flag "{flag}" in rule "{key}" contains illegal character {c!r}.')


class ShortOptionSpec:
    """
    A compact getopt-style rule string, like "abp:".

    Every character is a one-letter flag.  A flag
    followed by a colon requires a string parameter.
    """
    def __init__(self, letters):
        if not isinstance(letters, str):
            raise UsageInputError(f"ShortOptionSpec: letters must be a str, not {type(letters).__name__}")
        self.letters = letters

    def __repr__(self):
        return f"<ShortOptionSpec {self.letters!r}>"

    def rules(self):
        letters = PushbackIterator(self.letters)
        for letter in letters:
            if letter == ':':
                raise _blank_flag(self.letters)
            _check_flag(letter, self.letters)
            mode = parameter_mode.none
            type = value_type.flag
            if letters:
                c = next(letters)
                if c == ':':
                    mode = parameter_mode.required
                    type = value_type.string
                else:
                    letters.push(c)
            yield Rule(letter, (letter,), mode, type)


class NamedOptionSpec:
    """
    A mapping from rule keys to help text, like

        {
        'apple|a': 'Apple option',
        'pear|p=s': 'Pear option',
        'lines=#': 'Show this many lines',
        }

    A key is a list of flags separated by '|'; the first
    one is the canonical name.  The last flag may end
    with a type marker:

        =s  -s   required / optional string
        =w  -w   required / optional word (no whitespace)
        =i  -i   required / optional integer
        =#       numeric flag: "-5" binds this rule to 5

    A key consisting of just "=#" declares a numeric
    rule named "#".
    """
    def __init__(self, mapping):
        if not isinstance(mapping, Mapping):
            raise UsageInputError(f"NamedOptionSpec: mapping must be a Mapping, not {type(mapping).__name__}")
        self.mapping = mapping

    def __repr__(self):
        return f"<NamedOptionSpec {list(self.mapping)!r}>"

    def rules(self):
        for key, help in self.mapping.items():
            yield compile_rule_key(key, help)


def split_type_marker(key):
    """
    Splits the parameter type marker off the end of a rule key.

    Returns (flags, mode, type).
    """
    flags, equals, marker = key.rpartition('=')
    if equals:
        marker = '=' + marker
        if marker not in type_markers:
            raise RuleDefinitionError(f'Rule "{key}" has malformed type marker "{marker}".')
        if (marker == '=#') and (not flags):
            flags = '#'
        return (flags, *type_markers[marker])

    # '-' also appears inside long names ("man-bear"),
    # so it's only a marker if it's the second-to-last
    # character of a longer final flag.
    last = key.rpartition('|')[2]
    marker = last[-2:]
    if (len(last) > 2) and (marker[0] == '-') and (marker in type_markers):
        return (key[:-2], *type_markers[marker])
    return (key, parameter_mode.none, value_type.flag)


def compile_rule_key(key, help=''):
    if not isinstance(key, str):
        raise RuleDefinitionError(f"Rule key {key!r} must be a str.")
    if not isinstance(help, str):
        raise RuleDefinitionError(f'Help for rule "{key}" must be a str.')
    flags, mode, type = split_type_marker(key)
    aliases = flags.split('|')
    for flag in aliases:
        _check_flag(flag, key)
    return Rule(aliases[0], aliases, mode, type, help)


def option_spec(spec):
    """
    Normalizes spec into a ShortOptionSpec or a NamedOptionSpec.
    """
    if isinstance(spec, (ShortOptionSpec, NamedOptionSpec)):
        return spec
    if isinstance(spec, str):
        return ShortOptionSpec(spec)
    if isinstance(spec, Mapping):
        return NamedOptionSpec(spec)
    raise UsageInputError(f"rules should be a str or a Mapping, not {type(spec).__name__}")


class RuleTable:
    """
    The compiled, validated set of rules.

    No two rules share an alias.  When ignore_case is
    true, aliases are compared case-folded.  Rules
    iterate in declaration order.
    """

    def __init__(self, spec=None, *, ignore_case=False):
        self.ignore_case = bool(ignore_case)
        # canonical name -> Rule
        self.rules = {}
        # normalized alias -> canonical name
        self.alias_map = {}
        self.numeric_rule = None
        if spec is not None:
            self.add_rules(spec)

    def __repr__(self):
        return f"<RuleTable {' '.join(self.rules)}>"

    def __iter__(self):
        return iter(self.rules.values())

    def __len__(self):
        return len(self.rules)

    def __contains__(self, name):
        return self.resolve(name) is not None

    def normalize(self, name):
        if self.ignore_case:
            return name.casefold()
        return name

    def resolve(self, name):
        canonical = self.alias_map.get(self.normalize(name))
        if canonical is None:
            return None
        return self.rules[canonical]

    def _stage_alias(self, alias, staged):
        key = self.normalize(alias)
        if (key in self.alias_map) or (key in staged):
            raise RuleDefinitionError(f'Option "{dash(alias)}" is being defined more than once.')
        return key

    def add_rules(self, spec):
        """
        Compiles spec and merges its rules into the table.

        The whole batch is validated before any of it is
        added, so a failure leaves the table untouched.
        Returns the list of new rules.
        """
        new_rules = list(option_spec(spec).rules())

        staged = {}
        numeric_rule = self.numeric_rule
        for rule in new_rules:
            for alias in rule.aliases:
                key = self._stage_alias(alias, staged)
                staged[key] = rule.name
            if rule.type == value_type.numeric:
                if numeric_rule is not None:
                    raise RuleDefinitionError(f'Numeric flag rule "{rule.name}" conflicts with numeric flag rule "{numeric_rule.name}", only one is allowed.')
                numeric_rule = rule

        for rule in new_rules:
            self.rules[rule.name] = rule
        self.alias_map.update(staged)
        self.numeric_rule = numeric_rule
        return new_rules

    def set_aliases(self, mapping):
        """
        mapping maps an existing flag to a new alias for it,
        like {'a': 'apple'}.  Flags that don't name an existing
        rule are skipped.
        """
        if not isinstance(mapping, Mapping):
            raise UsageInputError(f"set_aliases(): mapping must be a Mapping, not {type(mapping).__name__}")
        staged = {}
        for flag, alias in mapping.items():
            rule = self.resolve(flag)
            if rule is None:
                continue
            if not isinstance(alias, str):
                raise RuleDefinitionError(f"Alias {alias!r} for flag {flag!r} must be a str.")
            _check_flag(alias, alias)
            key = self._stage_alias(alias, staged)
            staged[key] = (rule, alias)

        for key, (rule, alias) in staged.items():
            rule.aliases.append(alias)
            self.alias_map[key] = rule.name

    def set_help(self, mapping):
        """
        mapping maps a flag to its new help text.
        Flags that don't name an existing rule are ignored.
        """
        if not isinstance(mapping, Mapping):
            raise UsageInputError(f"set_help(): mapping must be a Mapping, not {type(mapping).__name__}")
        for flag, help in mapping.items():
            rule = self.resolve(flag)
            if rule is not None:
                rule.help = help

    def set_ignore_case(self, ignore_case):
        ignore_case = bool(ignore_case)
        if ignore_case == self.ignore_case:
            return
        alias_map = {}
        for rule in self.rules.values():
            for alias in rule.aliases:
                key = alias.casefold() if ignore_case else alias
                if key in alias_map:
                    raise RuleDefinitionError(f'Option "{dash(alias)}" is being defined more than once.')
                alias_map[key] = rule.name
        self.ignore_case = ignore_case
        self.alias_map = alias_map


##
## ValueCoercer
##

_integer_re = re.compile(r'[+-]?[0-9]+')
_whitespace_re = re.compile(r'\s')
_numeric_flag_re = re.compile(r'-[0-9]+')

def coerce_value(rule, value):
    """
    Converts value (a str from the command-line)
    to the type rule demands.  Raises ParseError
    if value isn't acceptable.
    """
    type = rule.type
    if type == value_type.word:
        if _whitespace_re.search(value):
            raise ParseError(f'Option "{rule.name}" requires a single-word parameter, but was given "{value}".')
    elif type in (value_type.integer, value_type.numeric):
        if not _integer_re.fullmatch(value):
            raise ParseError(f'Option "{rule.name}" requires an integer parameter, but was given "{value}".')
        return int(value)
    return value


def split_parameter(value, separator):
    """
    Splits a str value on separator, dropping empty pieces.
    Values without the separator come back unchanged.
    """
    if (not separator) or (not isinstance(value, str)) or (separator not in value):
        return value
    return [s for s in big.multisplit(value, (separator,)) if s]


def _copy_value(value):
    # lists are shared between assigned, options, and callers otherwise
    if isinstance(value, list):
        return list(value)
    return value


class ParsedOption:
    """
    The live binding of a rule inside a Getopt.

    count is how many times the option was seen
    on the command-line.  A count of 0 means the
    value was assigned programmatically.
    """
    __slots__ = ('value', 'count')

    def __init__(self, value, count=1):
        self.value = value
        self.count = count

    def __repr__(self):
        return f"<ParsedOption value={self.value!r} count={self.count}>"


##
## ArgumentTokenizer
##

class ArgumentTokenizer:
    """
    Walks a list of command-line arguments and binds
    what it finds to the options of a Getopt.

    Calling the tokenizer runs one full pass over
    the arguments; Getopt.parse() resets its state
    first.
    """

    def __init__(self, getopt):
        self.getopt = getopt

    def __call__(self, arguments):
        getopt = self.getopt
        remaining = getopt.remaining
        iterator = PushbackIterator(arguments)

        for a in iterator:
            if a == "--":
                if getopt.dash_dash:
                    remaining.extend(iterator)
                    break
                continue

            if a.startswith("--"):
                self.long_option(a, iterator)
                continue

            if a == "-":
                # A lone dash is the old UNIX spelling of "stdin".
                # It's only unambiguous at the very end.
                if iterator:
                    raise ParseError('Option "-" is not recognized: a lone dash is only allowed as the last argument.')
                remaining.append(a)
                continue

            if a.startswith("-"):
                if _numeric_flag_re.fullmatch(a) and getopt.numeric_flags:
                    self.numeric_flag(a)
                else:
                    self.short_option_cluster(a, iterator)
                continue

            remaining.append(a)
            if not getopt.parse_all:
                remaining.extend(iterator)
                break

    def is_option(self, a):
        if (not a.startswith("-")) or (a == "-"):
            return False
        # with numeric flags off, "-5" can only be a value.
        if (not self.getopt.numeric_flags) and _integer_re.fullmatch(a):
            return False
        return True

    def rule_for(self, flag):
        getopt = self.getopt
        rule = getopt.resolve(flag)
        if rule is not None:
            return rule
        if not getopt.freeform_flags:
            raise ParseError(f'Option "{flag}" is not recognized.')
        name = getopt.table.normalize(flag)
        rule = Rule(name, (name,), parameter_mode.optional, value_type.string, freeform=True)
        getopt.discovered[name] = rule
        if getopt.log is not None:
            getopt.log(f"freeform flag {dash(name)}")
        return rule

    def next_parameter(self, rule, flag, iterator):
        """
        Consumes the next argument as rule's parameter,
        if rule takes one and the next argument isn't
        an option.
        """
        if not rule.takes_parameter:
            return True
        if iterator:
            a = next(iterator)
            if not self.is_option(a):
                return coerce_value(rule, a)
            iterator.push(a)
        if rule.mode == parameter_mode.required:
            raise ParseError(f'Option "{flag}" requires a parameter.')
        return True

    def long_option(self, a, iterator):
        # everything after the *first* '=' is the value,
        # even if it contains more '=' characters.
        flag, equals, value = a[2:].partition("=")
        if not flag:
            raise ParseError(f'Option "{a}" is not recognized.')
        rule = self.rule_for(flag)

        if not equals:
            value = self.next_parameter(rule, flag, iterator)
        elif rule.takes_parameter:
            value = coerce_value(rule, value)
        else:
            # "--flag=value" for a flag that doesn't take a
            # parameter: the flag is set, the value is left
            # over as a positional argument.
            self.getopt.remaining.append(value)
            value = True

        self.bind(rule, flag, value)

    def short_option_cluster(self, a, iterator):
        ## "-abc" is exactly equivalent to "-a -b -c",
        ## until we reach a letter that takes a parameter.
        ## That letter takes the rest of the cluster as its
        ## parameter ("-pfoo", "-p=foo"), or the next argument
        ## if it's the last letter in the cluster.
        cluster = a[1:]
        for i, letter in enumerate(cluster):
            rule = self.rule_for(letter)
            remainder = cluster[i + 1:]

            if (not rule.takes_parameter) or (remainder and rule.freeform):
                self.bind(rule, letter, True)
                continue

            if remainder:
                if remainder.startswith("="):
                    remainder = remainder[1:]
                value = coerce_value(rule, remainder)
            else:
                value = self.next_parameter(rule, letter, iterator)
            self.bind(rule, letter, value)
            break

    def numeric_flag(self, a):
        rule = self.getopt.table.numeric_rule
        if rule is None:
            raise ParseError(f'Option "{a}" is not recognized: no rule handles numeric flags.')
        self.bind(rule, a, int(a[1:]))

    def bind(self, rule, flag, value):
        """
        Stores value for rule, applying the repeat policies.
        flag is the option as the user typed it, either a
        name ("p", "pear") or a numeric flag ("-5").
        """
        getopt = self.getopt
        options = getopt.options
        option = options.get(rule.name)
        # an assigned value (count 0) is replaced, never accumulated onto
        seen = option.count if option is not None else 0
        collected = option.value if (seen and isinstance(option.value, list)) else None

        value = split_parameter(value, getopt.parameter_separator)
        if (value is True) and getopt.cumulative_parameters and (collected is not None):
            # a bare "--colors" keeps the colors collected so far
            options[rule.name] = ParsedOption(collected, seen + 1)
        elif (value is True) and getopt.cumulative_flags:
            value = seen + 1
            options[rule.name] = ParsedOption(value, seen + 1)
        elif getopt.cumulative_parameters and (value is not True):
            values = collected if collected is not None else []
            if isinstance(value, list):
                values.extend(value)
            else:
                values.append(value)
            options[rule.name] = ParsedOption(values, seen + 1)
        else:
            options[rule.name] = ParsedOption(value, seen + 1)

        if getopt.log is not None:
            typed = flag if flag.startswith("-") else dash(flag)
            getopt.log(f"{typed} -> {rule.name}={options[rule.name].value!r}")

        getopt.dispatch(rule, flag, value)


##
## Renderer
##

def render_value(value):
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def usage_flags(rule):
    """
    The left column of a usage line for rule,
    like "-p|--pear <string>".
    """
    aliases = [dash(alias) for alias in rule.aliases if not ((rule.type == value_type.numeric) and (alias == '#'))]
    if rule.type == value_type.numeric:
        aliases.insert(0, "-#")
    flags = "|".join(aliases)
    if (rule.mode == parameter_mode.none) or (aliases == ["-#"]):
        return flags
    placeholder = f"<{placeholders[rule.type]}>"
    if rule.mode == parameter_mode.optional:
        placeholder = f"[ {placeholder} ]"
    return f"{flags} {placeholder}"


def usage_message(table, name, *, max_columns=80, min_flags_width=20):
    """
    Renders the usage message for the rules in table.

    One line per rule, in declaration order: the
    flags (and parameter placeholder) in a column
    at least min_flags_width wide, then the help
    text, word-wrapped to fit in max_columns.
    """
    rows = [(usage_flags(rule), rule.help or '') for rule in table]
    width = max([min_flags_width] + [len(flags) for flags, _ in rows])
    help_width = max(max_columns - width - 1, min_flags_width)

    lines = [f"Usage: {name} [ options ]"]
    for flags, help in rows:
        help = text.wrap_words(text.split_help(help), margin=help_width)
        lines.append(text.merge_columns((flags, width + 1, width + 1), (help, 0, help_width)))
    return "\n".join(lines) + "\n"


def callback_arity(callback):
    """
    How many of (value, getopt) callback accepts: 2, 1, or 0.
    """
    try:
        signature = inspect.signature(callback)
    except (TypeError, ValueError):
        # no signature available (some builtins); assume just the value
        return 1
    for arity in (2, 1, 0):
        try:
            signature.bind(*((None,) * arity))
            return arity
        except TypeError:
            pass
    raise UsageInputError(f"{callback!r} must accept a value, or a value and a Getopt")


class Getopt:
    """
    Parses a command-line against a RuleTable.

    rules is a RuleTable, a short-option string like "abp:",
    or a mapping like {"pear|p=s": "Pear option"}.
    arguments defaults to sys.argv[1:].

    Parsing is lazy: any method that reads the parsed
    options calls parse() first.  Changing the rules,
    the arguments, the callbacks, or the configuration
    means the next read parses again, from scratch.
    """

    def __init__(self,
        rules,
        arguments=None,
        *,
        name=None,

        ignore_case = False,           # '--Apple' matches 'apple'
        dash_dash = True,              # '--' ends option processing
        parse_all = True,              # if false, the first positional argument ends option processing

        cumulative_parameters = False, # '--color=red --color=blue' -> ['red', 'blue']
        cumulative_flags = False,      # '-v -v -v' -> 3
        parameter_separator = None,    # ',' makes '--color=red,blue' -> ['red', 'blue']

        freeform_flags = False,        # accept undeclared '--name' options
        numeric_flags = False,         # '-5' binds the rule declared with '=#'

        usage_max_columns = 80,

        log_events = False,
        ):
        if isinstance(rules, RuleTable):
            if ignore_case and not rules.ignore_case:
                raise UsageInputError("ignore_case=True requires a RuleTable constructed with ignore_case=True")
            self.table = rules
        else:
            self.table = RuleTable(rules, ignore_case=ignore_case)

        self.name = name or os.path.basename(sys.argv[0])

        self.dash_dash = dash_dash
        self.parse_all = parse_all
        self.cumulative_parameters = cumulative_parameters
        self.cumulative_flags = cumulative_flags
        self.parameter_separator = None
        self.freeform_flags = freeform_flags
        self.numeric_flags = numeric_flags
        self.usage_max_columns = usage_max_columns
        self.log_events = log_events
        self.configure(parameter_separator=parameter_separator)

        # canonical name -> ParsedOption
        self.options = {}
        # canonical name -> value, from assign().  survives reparsing.
        self.assigned = {}
        self.remaining = []
        # normalized name -> freeform Rule, rediscovered by every parse
        self.discovered = {}
        # name as registered -> (callback, number of arguments it accepts).
        # normalized at dispatch time, so configure(ignore_case=...) applies.
        self.callbacks = {}

        self.log = None
        self.tokenizer = ArgumentTokenizer(self)

        if arguments is None:
            arguments = sys.argv[1:]
        self.arguments = []
        self.set_arguments(arguments)

    def __repr__(self):
        state = "parsed" if self.parsed else "unparsed"
        return f"<Getopt {self.name!r} {state} {self.table!r}>"

    @property
    def ignore_case(self):
        return self.table.ignore_case

    configuration_settings = frozenset((
        'ignore_case',
        'dash_dash',
        'parse_all',
        'cumulative_parameters',
        'cumulative_flags',
        'parameter_separator',
        'freeform_flags',
        'numeric_flags',
        'usage_max_columns',
        'log_events',
        ))

    def configure(self, **settings):
        """
        Changes configuration settings after construction.
        Accepts the same keyword-only settings as the constructor.
        """
        unknown = set(settings) - self.configuration_settings
        if unknown:
            raise UsageInputError(f"configure(): unknown settings {' '.join(sorted(unknown))}")

        separator = settings.get('parameter_separator')
        if (separator is not None) and not isinstance(separator, str):
            raise UsageInputError(f"parameter_separator must be a str or None, not {type(separator).__name__}")

        for name, value in settings.items():
            if name == 'ignore_case':
                self.table.set_ignore_case(value)
            else:
                setattr(self, name, value)
        self.parsed = False
        return self

    ##
    ## rules
    ##

    def add_rules(self, spec):
        self.table.add_rules(spec)
        self.parsed = False
        return self

    def set_aliases(self, mapping):
        self.table.set_aliases(mapping)
        self.parsed = False
        return self

    def set_help(self, mapping):
        self.table.set_help(mapping)
        return self

    def resolve(self, name):
        """
        Returns the Rule for name (declared or freeform), or None.
        """
        if not isinstance(name, str):
            return None
        rule = self.table.resolve(name)
        if rule is None:
            rule = self.discovered.get(self.table.normalize(name))
        return rule

    ##
    ## callbacks
    ##

    def set_option_callback(self, name, callback):
        """
        Registers callback for the option name (or any of its aliases).

        callback is called with the value every time the option
        is bound during parsing.  If it accepts two arguments it's
        also passed this Getopt.  If it returns False, parsing
        fails with a ParseError.
        """
        if not (name and isinstance(name, str)):
            raise UsageInputError(f"set_option_callback(): name must be a non-empty str, not {name!r}")
        if not callable(callback):
            raise UsageInputError(f"{callback!r} is not callable")
        self.callbacks[name] = (callback, callback_arity(callback))
        self.parsed = False
        return self

    def dispatch(self, rule, flag, value):
        if not self.callbacks:
            return
        normalize = self.table.normalize
        callbacks = {normalize(name): entry for name, entry in self.callbacks.items()}
        for alias in rule.aliases:
            entry = callbacks.get(normalize(alias))
            if entry:
                break
        else:
            return

        callback, arity = entry
        result = callback(*(value, self)[:arity])
        if result is False:
            raise ParseError(f"The option {flag} is invalid. See usage.")

    ##
    ## arguments
    ##

    @staticmethod
    def _check_arguments(arguments, method):
        if isinstance(arguments, (str, bytes)) or not isinstance(arguments, Sequence):
            raise UsageInputError(f"{method}(): arguments should be an array (a list or tuple) of str, not {type(arguments).__name__}")
        for a in arguments:
            if not isinstance(a, str):
                raise UsageInputError(f"{method}(): arguments should be an array of str, but {a!r} is a {type(a).__name__}")
        return list(arguments)

    def set_arguments(self, arguments):
        self.arguments = self._check_arguments(arguments, "set_arguments")
        self.parsed = False
        return self

    def add_arguments(self, arguments):
        self.arguments.extend(self._check_arguments(arguments, "add_arguments"))
        self.parsed = False
        return self

    ##
    ## parsing
    ##

    def parse(self):
        """
        Parses the arguments, if they haven't been parsed
        since the last change.  Returns self.
        """
        if self.parsed:
            return self

        self.log = big.Log() if self.log_events else None
        if self.log is not None:
            self.log.enter("parse")

        self.options = {name: ParsedOption(_copy_value(value), 0) for name, value in self.assigned.items()}
        self.remaining = []
        self.discovered = {}

        try:
            self.tokenizer(self.arguments)
        except ParseError as e:
            if e.usage is None:
                e.usage = self.get_usage_message()
            if self.log is not None:
                self.log(f"parse error: {e}")
            raise
        finally:
            if self.log is not None:
                self.log.exit()

        self.parsed = True
        return self

    ##
    ## accessors
    ##

    def get_option(self, name):
        """
        Returns the value bound to option name,
        or None if it isn't set.
        """
        self.parse()
        rule = self.resolve(name)
        if rule is None:
            return None
        option = self.options.get(rule.name)
        if option is None:
            return None
        return _copy_value(option.value)

    def is_set(self, name):
        self.parse()
        rule = self.resolve(name)
        return (rule is not None) and (rule.name in self.options)

    def assign(self, name, value):
        """
        Sets option name to value, overriding (or standing in
        for) the command-line.  The assignment survives
        reparsing, unless the option appears on the
        command-line again.
        """
        self.parse()
        rule = self.resolve(name)
        if rule is None:
            raise UsageInputError(f'Option "{name}" is not recognized.')
        if isinstance(value, (list, tuple)):
            if not all(isinstance(v, str) for v in value):
                raise UsageInputError(f"assign(): a sequence value must contain only str, got {value!r}")
            value = list(value)
        elif not isinstance(value, (bool, int, str)):
            raise UsageInputError(f"assign(): value must be a bool, int, str, or sequence of str, not {type(value).__name__}")
        self.assigned[rule.name] = value
        self.options[rule.name] = ParsedOption(_copy_value(value), 0)
        return self

    def unset(self, name):
        self.parse()
        rule = self.resolve(name)
        if rule is None:
            return self
        self.options.pop(rule.name, None)
        self.assigned.pop(rule.name, None)
        return self

    def get_options(self):
        "Returns the canonical names of all set options."
        self.parse()
        return list(self.options)

    def get_remaining_args(self):
        self.parse()
        return list(self.remaining)

    def __contains__(self, name):
        return self.is_set(name)

    def __getitem__(self, name):
        if not self.is_set(name):
            raise KeyError(name)
        return self.get_option(name)

    def __setitem__(self, name, value):
        self.assign(name, value)

    def __delitem__(self, name):
        if not self.is_set(name):
            raise KeyError(name)
        self.unset(name)

    ##
    ## rendering
    ##

    def get_usage_message(self):
        return usage_message(self.table, self.name, max_columns=self.usage_max_columns)

    def to_string(self):
        self.parse()
        return " ".join(f"{name}={render_value(option.value)}" for name, option in self.options.items())

    __str__ = to_string

    def to_list(self):
        """
        Returns a flat list alternating option names
        and their values rendered as str.
        """
        self.parse()
        l = []
        for name, option in self.options.items():
            l.append(name)
            l.append(render_value(option.value))
        return l

    def to_json(self):
        self.parse()
        entries = []
        for name, option in self.options.items():
            entry = {"flag": name}
            if option.value is not True:
                entry["parameter"] = option.value
            entries.append({"option": entry})
        return json.dumps({"options": entries}, indent=4)

    def to_xml(self):
        self.parse()
        root = ET.Element("options")
        for name, option in self.options.items():
            attributes = {"flag": name}
            if option.value is not True:
                attributes["parameter"] = render_value(option.value)
            ET.SubElement(root, "option", attributes)
        # ElementTree writes empty elements as '<option ... />'.
        # '>' is always escaped inside attribute values, so this
        # only touches the element ends.
        xml = ET.tostring(root, encoding="unicode").replace(" />", "/>")
        return '<?xml version="1.0" encoding="utf-8"?>\n' + xml + "\n"
